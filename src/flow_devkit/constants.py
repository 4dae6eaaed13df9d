"""Configuration constants for flow-devkit."""

MANIFEST_FILENAME = "flow.json"
IMPORTS_DIRNAME = "imports"

EMULATOR = "emulator"
TESTING = "testing"
TESTNET = "testnet"
MAINNET = "mainnet"

# Access node hosts written to new manifests
DEFAULT_NETWORKS = {
    EMULATOR: "127.0.0.1:3569",
    TESTING: "127.0.0.1:3569",
    TESTNET: "access.testnet.nodes.onflow.org:9000",
    MAINNET: "access.mainnet.nodes.onflow.org:9000",
}

# Networks the installer holds a gateway for
GATEWAY_NETWORKS = (EMULATOR, TESTNET, MAINNET)

# Access API endpoints: gRPC host from the manifest -> REST base URL
NETWORK_CONFIG = {
    "127.0.0.1:3569": {"rest_url": "http://127.0.0.1:8888"},
    "localhost:3569": {"rest_url": "http://localhost:8888"},
    "access.testnet.nodes.onflow.org:9000": {"rest_url": "https://rest-testnet.onflow.org"},
    "access.mainnet.nodes.onflow.org:9000": {"rest_url": "https://rest-mainnet.onflow.org"},
}

# Public access node networks whose REST endpoint is named after another network
ACCESS_NODE_NETWORKS = {"devnet": TESTNET}

# gRPC port -> REST port on the same host (emulator, access node)
REST_PORTS = {"3569": "8888", "9000": "8070"}

DEFAULT_TIMEOUT = 30

# Alias prompted for after installing from a network
ALIAS_NETWORK_FOR = {
    MAINNET: TESTNET,
    TESTNET: MAINNET,
}

# System contracts on mainnet, by account
CORE_CONTRACTS = {
    "f233dcee88fe0abe": ["FungibleToken", "FungibleTokenMetadataViews", "FungibleTokenSwitchboard", "Burner"],
    "1654653399040a61": ["FlowToken"],
    "f919ee77447b7497": ["FlowFees"],
    "e467b9dd11fa00df": [
        "FlowServiceAccount",
        "FlowStorageFees",
        "NodeVersionBeacon",
        "RandomBeaconHistory",
        "EVM",
        "Crypto",
    ],
    "8624b52f9ddcd04a": ["FlowIDTableStaking", "FlowEpoch", "FlowClusterQC", "FlowDKG"],
    "1d7e57aa55817448": ["NonFungibleToken", "MetadataViews", "ViewResolver"],
    "8d0e87b65159ae63": ["LockedTokens", "FlowStakingCollection"],
    "62430cf28c26d095": ["StakingProxy"],
}

# DeFi Actions connector contracts: name -> (mainnet address, testnet address)
DEFI_ACTIONS_CONTRACTS = {
    "DeFiActions": ("92195d814edf9cb0", "4c2ff9dd03ab442f"),
    "DeFiActionsMathUtils": ("92195d814edf9cb0", "4c2ff9dd03ab442f"),
    "DeFiActionsUtils": ("92195d814edf9cb0", "4c2ff9dd03ab442f"),
    "FungibleTokenConnectors": ("1d9a619393e9fb53", "5a7b9cee9aaf4e4e"),
    "EVMNativeFLOWConnectors": ("cc15a0c9c656b648", "b88ba0e976146cd1"),
    "EVMTokenConnectors": ("cc15a0c9c656b648", "b88ba0e976146cd1"),
    "SwapConnectors": ("0bce04a00aedf132", "addd594cf410166a"),
    "IncrementFiSwapConnectors": ("efa9bd7d1b17f1ed", "49bae091e5ea16b5"),
    "IncrementFiFlashloanConnectors": ("efa9bd7d1b17f1ed", "49bae091e5ea16b5"),
    "IncrementFiPoolLiquidityConnectors": ("efa9bd7d1b17f1ed", "49bae091e5ea16b5"),
    "IncrementFiStakingConnectors": ("efa9bd7d1b17f1ed", "49bae091e5ea16b5"),
    "BandOracleConnectors": ("f627b5c89141ed99", "1a9f5d18d096cd7a"),
    "UniswapV2Connectors": ("0e5b1dececaca3a8", "fef8e4c5c16ccda5"),
}

# Lint diagnostic categories that count as errors
SYNTAX_ERROR_CATEGORY = "syntax-error"
SEMANTIC_ERROR_CATEGORY = "semantic-error"
ERROR_CATEGORY = "error"
ERROR_CATEGORIES = (SYNTAX_ERROR_CATEGORY, SEMANTIC_ERROR_CATEGORY, ERROR_CATEGORY)
