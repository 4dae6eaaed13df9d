"""Recursive-descent parser for Cadence programs.

Usage:
    program, error = parse_program(code)
    if program is None:
        ...  # error.errors holds the syntax errors

A ``pub`` or ``priv`` access modifier is reported as a syntax error with a
suggested replacement, but parsing continues and a program is still returned.
Any other syntax error stops the parse.
"""

from typing import List, Optional, Tuple, Union

from . import ast
from .errors import InvalidSyntaxError, ParserError, Position, SyntaxErrorWithSuggestedReplacement
from .lexer import EOF, FIXED_POINT, IDENTIFIER, INTEGER, STRING, Lexer, Token, decode_source
from .locations import AddressLocation, IdentifierLocation, Location, StringLocation

MAX_ADDRESS_LENGTH = 16

COMPOSITE_KINDS = ("contract", "resource", "struct", "event", "enum", "attachment")
PATH_DOMAINS = ("storage", "public", "private")

TERNARY_POWER = 10
BINARY_POWERS = {
    "||": 20,
    "&&": 30,
    "<": 40,
    "<=": 40,
    ">": 40,
    ">=": 40,
    "==": 40,
    "!=": 40,
    "??": 50,
    "|": 60,
    "^": 70,
    "&": 80,
    "<<": 90,
    ">>": 90,
    "+": 100,
    "-": 100,
    "*": 110,
    "/": 110,
    "%": 110,
}
RIGHT_ASSOCIATIVE = ("??",)
CASTING_POWER = 120
PREFIX_POWER = 130

TRANSFERS = ("=", "<-", "<-!")


class _Backtrack(Exception):
    pass


def normalize_address_literal(text: str, start: Position, end: Position) -> str:
    """Strip the 0x prefix and left-pad an address literal to 16 lowercase nibbles."""
    digits = text[2:].replace("_", "").lower()
    if len(digits) > MAX_ADDRESS_LENGTH:
        raise InvalidSyntaxError(f"address too large: `{text}`", start, end)
    return digits.rjust(MAX_ADDRESS_LENGTH, "0")


class Parser:
    """Parses declarations, statements, expressions and types from a token stream.

    Tokens are pulled from the lexer on demand so a caller that only needs the
    leading import section never tokenizes the rest of the program.
    """

    def __init__(self, code: str, start: Optional[Position] = None):
        self.code = code
        self.lexer = Lexer(code, start)
        self.tokens: List[Token] = []
        self.pos = 0
        self.soft_errors: List[InvalidSyntaxError] = []

    # Token stream

    def _token(self, ahead: int = 0) -> Token:
        while len(self.tokens) <= self.pos + ahead:
            if self.tokens and self.tokens[-1].kind == EOF:
                return self.tokens[-1]
            self.tokens.append(self.lexer.next_token())
        return self.tokens[self.pos + ahead]

    @property
    def current(self) -> Token:
        return self._token()

    def _previous(self) -> Token:
        return self.tokens[self.pos - 1]

    def _advance(self) -> Token:
        token = self._token()
        self.pos += 1
        return token

    def _at(self, kind: str) -> bool:
        return self.current.kind == kind

    def _at_keyword(self, *words: str) -> bool:
        return self.current.is_keyword(*words)

    def _accept(self, kind: str) -> Optional[Token]:
        if self._at(kind):
            return self._advance()
        return None

    def _unexpected(self, expected: str) -> InvalidSyntaxError:
        token = self.current
        got = "end of program" if token.kind == EOF else f"`{token.text}`"
        return InvalidSyntaxError(f"expected {expected}, got {got}", token.start, token.end)

    def _expect(self, kind: str) -> Token:
        if not self._at(kind):
            raise self._unexpected(f"token `{kind}`")
        return self._advance()

    def _expect_keyword(self, word: str) -> Token:
        if not self._at_keyword(word):
            raise self._unexpected(f"keyword `{word}`")
        return self._advance()

    def _identifier(self) -> ast.Identifier:
        if not self._at(IDENTIFIER):
            raise self._unexpected("identifier")
        token = self._advance()
        return ast.Identifier(name=token.text, start_pos=token.start, end_pos=token.end)

    def _adjacent(self, first: Token, second: Token) -> bool:
        return second.start.offset == first.end.offset + 1

    # Program and declarations

    def parse_program(self) -> ast.Program:
        declarations = []
        while not self._at(EOF):
            if self._accept(";"):
                continue
            declarations.append(self._declaration(context="program"))
        return ast.Program(declarations=declarations)

    def parse_import_section(self) -> List[Union[ast.ImportDeclaration, ast.PragmaDeclaration]]:
        """Parse leading pragmas and imports, stopping at the first other declaration."""
        declarations = []
        while True:
            if self._accept(";"):
                continue
            if self._at("#"):
                declarations.append(self._pragma())
            elif self._at_keyword("import"):
                declarations.append(self._import())
            else:
                return declarations

    def _access(self) -> Tuple[ast.Access, bool]:
        token = self.current
        if token.is_keyword("access") and self._token(1).kind == "(":
            self._advance()
            self._advance()
            if self._at_keyword("all", "self", "contract", "account") and self._token(1).kind == ")":
                kind = self._advance().text
                self._expect(")")
                return ast.Access(kind=kind), True
            if self._at_keyword("mapping"):
                self._advance()
                name = self._nominal_type().qualified_name()
                self._expect(")")
                return ast.Access(kind=ast.ACCESS_MAPPING, entitlements=(name,)), True
            names = [self._nominal_type().qualified_name()]
            while self._at(",") or self._at("|"):
                self._advance()
                names.append(self._nominal_type().qualified_name())
            self._expect(")")
            return ast.Access(kind=ast.ACCESS_ENTITLEMENTS, entitlements=tuple(names)), True

        if token.is_keyword("pub", "priv"):
            self._advance()
            end = token.end
            if token.text == "pub" and self._at("(") and self._token(1).is_keyword("set"):
                self._advance()
                self._advance()
                end = self._expect(")").end
            replacement = "access(all)" if token.text == "pub" else "access(self)"
            self.soft_errors.append(
                SyntaxErrorWithSuggestedReplacement(
                    f"`{token.text}` is no longer a valid access keyword",
                    token.start,
                    end,
                    replacement,
                )
            )
            kind = ast.ACCESS_ALL if token.text == "pub" else ast.ACCESS_SELF
            return ast.Access(kind=kind), True

        return ast.Access(), False

    def _declaration(self, context: str) -> ast.Declaration:
        """Parse one declaration. ``context`` is program, composite, enum or transaction."""
        doc = self.current.doc
        start = self.current.start
        access, has_access = self._access()

        is_static = is_native = is_view = False
        while self._at_keyword("static", "native", "view") and self._token(1).kind == IDENTIFIER:
            word = self._advance().text
            is_static = is_static or word == "static"
            is_native = is_native or word == "native"
            is_view = is_view or word == "view"

        token = self.current
        if token.kind == "#" and not has_access:
            return self._pragma()
        if token.is_keyword("import") and not has_access:
            return self._import()
        if token.is_keyword("let", "var"):
            if context in ("composite", "transaction"):
                declaration = self._field(start)
            else:
                declaration = self._variable()
        elif token.is_keyword("fun"):
            declaration = self._function(start, is_view=is_view, is_static=is_static, is_native=is_native)
        elif token.is_keyword("init", "destroy", "prepare", "execute") and context in ("composite", "transaction"):
            declaration = self._special_function(start)
        elif token.is_keyword("case") and context == "enum":
            self._advance()
            identifier = self._identifier()
            declaration = ast.EnumCaseDeclaration(identifier=identifier, start_pos=start, end_pos=identifier.end_pos)
        elif token.is_keyword("event"):
            declaration = self._event(start)
        elif token.is_keyword(*COMPOSITE_KINDS):
            declaration = self._composite(start)
        elif token.is_keyword("entitlement"):
            declaration = self._entitlement(start)
        elif token.is_keyword("transaction") and context == "program":
            declaration = self._transaction(start)
        else:
            raise self._unexpected("declaration")

        declaration.access = access
        declaration.docstring = doc
        return declaration

    def _pragma(self) -> ast.PragmaDeclaration:
        start = self._expect("#").start
        expression = self._expression()
        return ast.PragmaDeclaration(expression=expression, start_pos=start, end_pos=expression.end_pos)

    def _import(self) -> ast.ImportDeclaration:
        start = self._expect_keyword("import").start
        identifiers: List[ast.Identifier] = []
        token = self.current

        if token.kind in (STRING, INTEGER):
            location, location_end = self._import_location()
            return ast.ImportDeclaration(
                identifiers=identifiers,
                location=location,
                location_start=token.start,
                location_end=location_end,
                start_pos=start,
                end_pos=location_end,
            )

        identifiers.append(self._identifier())
        while self._accept(","):
            identifiers.append(self._identifier())

        if not self._at_keyword("from"):
            if len(identifiers) != 1:
                raise self._unexpected("keyword `from`")
            identifier = identifiers[0]
            return ast.ImportDeclaration(
                identifiers=[],
                location=IdentifierLocation(identifier.name),
                location_start=identifier.start_pos,
                location_end=identifier.end_pos,
                start_pos=start,
                end_pos=identifier.end_pos,
            )

        self._advance()
        location_start = self.current.start
        location, location_end = self._import_location()
        return ast.ImportDeclaration(
            identifiers=identifiers,
            location=location,
            location_start=location_start,
            location_end=location_end,
            start_pos=start,
            end_pos=location_end,
        )

    def _import_location(self) -> Tuple[Location, Position]:
        token = self.current
        if token.kind == STRING:
            self._advance()
            return StringLocation("".join(p for p in token.parts if isinstance(p, str))), token.end
        if token.kind == INTEGER and token.base == 16:
            self._advance()
            return AddressLocation(normalize_address_literal(token.text, token.start, token.end), ""), token.end
        if token.kind == IDENTIFIER:
            self._advance()
            return IdentifierLocation(token.text), token.end
        raise self._unexpected("import location")

    def _field(self, start: Position) -> ast.FieldDeclaration:
        kind = self._advance().text
        identifier = self._identifier()
        self._expect(":")
        annotation = self._type_annotation()
        return ast.FieldDeclaration(
            variable_kind=kind,
            identifier=identifier,
            type_annotation=annotation,
            start_pos=start,
            end_pos=annotation.end_pos,
        )

    def _variable(self) -> ast.VariableDeclaration:
        keyword = self._advance()
        identifier = self._identifier()
        annotation = None
        if self._accept(":"):
            annotation = self._type_annotation()
        transfer = self._transfer()
        value = self._expression()
        declaration = ast.VariableDeclaration(
            is_constant=keyword.text == "let",
            identifier=identifier,
            type_annotation=annotation,
            transfer=transfer,
            value=value,
            start_pos=keyword.start,
            end_pos=value.end_pos,
        )
        if self.current.kind in TRANSFERS and not self.current.newline_before:
            declaration.second_transfer = self._transfer()
            declaration.second_value = self._expression()
            declaration.end_pos = declaration.second_value.end_pos
        return declaration

    def _transfer(self) -> str:
        if self.current.kind not in TRANSFERS:
            raise self._unexpected("transfer operation")
        return self._advance().text

    def _parameters(self) -> List[ast.Parameter]:
        self._expect("(")
        parameters = []
        while not self._at(")"):
            start = self.current.start
            label = None
            identifier = self._identifier()
            if self._at(IDENTIFIER):
                label = identifier.name
                identifier = self._identifier()
            self._expect(":")
            annotation = self._type_annotation()
            end = annotation.end_pos
            if self._accept("="):
                end = self._expression().end_pos
            parameters.append(
                ast.Parameter(
                    label=label,
                    identifier=identifier,
                    type_annotation=annotation,
                    start_pos=start,
                    end_pos=end,
                )
            )
            if not self._accept(","):
                break
        self._expect(")")
        return parameters

    def _type_parameters(self) -> List[ast.TypeParameter]:
        if not self._accept("<"):
            return []
        parameters = []
        while not self._at(">"):
            identifier = self._identifier()
            bound = None
            if self._accept(":"):
                bound = self._type_annotation()
            parameters.append(
                ast.TypeParameter(
                    identifier=identifier,
                    bound=bound,
                    start_pos=identifier.start_pos,
                    end_pos=bound.end_pos if bound else identifier.end_pos,
                )
            )
            if not self._accept(","):
                break
        self._expect(">")
        return parameters

    def _function(
        self, start: Position, is_view: bool = False, is_static: bool = False, is_native: bool = False
    ) -> ast.FunctionDeclaration:
        self._expect_keyword("fun")
        identifier = self._identifier()
        type_parameters = self._type_parameters()
        parameters = self._parameters()
        return_type = None
        if self._accept(":"):
            return_type = self._type_annotation()
        body = None
        end = self._previous().end
        if self._at("{"):
            body = self._function_block()
            end = body.end_pos
        return ast.FunctionDeclaration(
            identifier=identifier,
            parameters=parameters,
            return_type=return_type,
            body=body,
            type_parameters=type_parameters,
            is_view=is_view,
            is_static=is_static,
            is_native=is_native,
            start_pos=start,
            end_pos=end,
        )

    def _special_function(self, start: Position) -> ast.SpecialFunctionDeclaration:
        keyword = self._advance()
        identifier = ast.Identifier(name=keyword.text, start_pos=keyword.start, end_pos=keyword.end)
        parameters = self._parameters() if self._at("(") else []
        body = None
        end = self._previous().end
        if self._at("{"):
            body = self._function_block()
            end = body.end_pos
        return ast.SpecialFunctionDeclaration(
            kind=keyword.text,
            identifier=identifier,
            parameters=parameters,
            return_type=None,
            body=body,
            start_pos=start,
            end_pos=end,
        )

    def _event(self, start: Position) -> ast.CompositeDeclaration:
        self._advance()
        identifier = self._identifier()
        parameters = self._parameters()
        fields = [
            ast.FieldDeclaration(
                access=ast.Access(kind=ast.ACCESS_ALL),
                variable_kind="let",
                identifier=p.identifier,
                type_annotation=p.type_annotation,
                start_pos=p.start_pos,
                end_pos=p.end_pos,
            )
            for p in parameters
        ]
        return ast.CompositeDeclaration(
            kind="event",
            identifier=identifier,
            conformances=[],
            members=fields,
            start_pos=start,
            end_pos=self._previous().end,
        )

    def _composite(self, start: Position) -> ast.CompositeDeclaration:
        kind = self._advance().text
        is_interface = False
        if self._at_keyword("interface"):
            self._advance()
            is_interface = True
        identifier = self._identifier()

        base_type = None
        enum_raw_type = None
        conformances: List[ast.NominalType] = []
        if kind == "attachment":
            self._expect_keyword("for")
            base_type = self._nominal_type()
        if self._accept(":"):
            if kind == "enum":
                enum_raw_type = self._type()
            else:
                conformances.append(self._nominal_type())
                while self._accept(","):
                    conformances.append(self._nominal_type())

        context = "enum" if kind == "enum" else "composite"
        self._expect("{")
        members = []
        while not self._at("}"):
            if self._accept(";"):
                continue
            if self._at(EOF):
                raise self._unexpected("token `}`")
            members.append(self._declaration(context=context))
        end = self._expect("}").end
        return ast.CompositeDeclaration(
            kind=kind,
            identifier=identifier,
            conformances=conformances,
            members=members,
            is_interface=is_interface,
            base_type=base_type,
            enum_raw_type=enum_raw_type,
            start_pos=start,
            end_pos=end,
        )

    def _entitlement(self, start: Position) -> ast.Declaration:
        self._advance()
        if self._at_keyword("mapping") and self._token(1).kind == IDENTIFIER:
            self._advance()
            identifier = self._identifier()
            self._expect("{")
            depth = 1
            while depth:
                token = self._advance()
                if token.kind == EOF:
                    raise InvalidSyntaxError("expected token `}`", token.start, token.end)
                depth += {"{": 1, "}": -1}.get(token.kind, 0)
            return ast.EntitlementMappingDeclaration(
                identifier=identifier, elements=[], start_pos=start, end_pos=self._previous().end
            )
        identifier = self._identifier()
        return ast.EntitlementDeclaration(identifier=identifier, start_pos=start, end_pos=identifier.end_pos)

    def _transaction(self, start: Position) -> ast.TransactionDeclaration:
        self._advance()
        parameters = self._parameters() if self._at("(") else []
        self._expect("{")
        fields: List[ast.FieldDeclaration] = []
        prepare = execute = None
        pre_conditions: list = []
        post_conditions: list = []
        while not self._at("}"):
            if self._accept(";"):
                continue
            if self._at_keyword("pre") and self._token(1).kind == "{":
                self._advance()
                pre_conditions = self._conditions()
            elif self._at_keyword("post") and self._token(1).kind == "{":
                self._advance()
                post_conditions = self._conditions()
            elif self._at_keyword("execute"):
                token = self.current
                self._advance()
                block = self._block()
                execute = ast.SpecialFunctionDeclaration(
                    kind="execute",
                    identifier=ast.Identifier(name="execute", start_pos=token.start, end_pos=token.end),
                    parameters=[],
                    return_type=None,
                    body=ast.FunctionBlock(block=block, start_pos=block.start_pos, end_pos=block.end_pos),
                    start_pos=token.start,
                    end_pos=block.end_pos,
                )
            elif self._at(EOF):
                raise self._unexpected("token `}`")
            else:
                declaration = self._declaration(context="transaction")
                if isinstance(declaration, ast.FieldDeclaration):
                    fields.append(declaration)
                elif isinstance(declaration, ast.SpecialFunctionDeclaration) and declaration.kind == "prepare":
                    prepare = declaration
                else:
                    raise InvalidSyntaxError(
                        "unexpected declaration in transaction", declaration.start_pos, declaration.end_pos
                    )
        end = self._expect("}").end
        return ast.TransactionDeclaration(
            parameters=parameters,
            fields=fields,
            prepare=prepare,
            pre_conditions=pre_conditions,
            execute=execute,
            post_conditions=post_conditions,
            start_pos=start,
            end_pos=end,
        )

    # Blocks and statements

    def _conditions(self) -> List[Union[ast.Condition, ast.EmitCondition]]:
        self._expect("{")
        conditions: List[Union[ast.Condition, ast.EmitCondition]] = []
        while not self._at("}"):
            if self._accept(";"):
                continue
            if self._at_keyword("emit"):
                self._advance()
                conditions.append(ast.EmitCondition(invocation=self._invocation_expression()))
                continue
            test = self._expression()
            message = None
            if self._accept(":"):
                message = self._expression()
            conditions.append(ast.Condition(test=test, message=message))
        self._expect("}")
        return conditions

    def _function_block(self) -> ast.FunctionBlock:
        start = self._expect("{").start
        pre_conditions: list = []
        post_conditions: list = []
        if self._at_keyword("pre") and self._token(1).kind == "{":
            self._advance()
            pre_conditions = self._conditions()
        if self._at_keyword("post") and self._token(1).kind == "{":
            self._advance()
            post_conditions = self._conditions()
        statements = self._statements()
        end = self._expect("}").end
        block = ast.Block(statements=statements, start_pos=start, end_pos=end)
        return ast.FunctionBlock(
            block=block,
            pre_conditions=pre_conditions,
            post_conditions=post_conditions,
            start_pos=start,
            end_pos=end,
        )

    def _block(self) -> ast.Block:
        start = self._expect("{").start
        statements = self._statements()
        end = self._expect("}").end
        return ast.Block(statements=statements, start_pos=start, end_pos=end)

    def _statements(self) -> List[ast.Node]:
        statements = []
        while not self._at("}"):
            if self._accept(";"):
                continue
            if self._at(EOF):
                raise self._unexpected("token `}`")
            statements.append(self._statement())
        return statements

    def _statement(self) -> ast.Node:
        token = self.current
        if token.kind == IDENTIFIER:
            word = token.text
            if word == "return":
                self._advance()
                following = self.current
                if following.newline_before or following.kind in ("}", ";", EOF):
                    return ast.ReturnStatement(start_pos=token.start, end_pos=token.end)
                expression = self._expression()
                return ast.ReturnStatement(expression=expression, start_pos=token.start, end_pos=expression.end_pos)
            if word == "break":
                self._advance()
                return ast.BreakStatement(start_pos=token.start, end_pos=token.end)
            if word == "continue":
                self._advance()
                return ast.ContinueStatement(start_pos=token.start, end_pos=token.end)
            if word == "if":
                return self._if()
            if word == "while":
                self._advance()
                test = self._expression()
                block = self._block()
                return ast.WhileStatement(test=test, block=block, start_pos=token.start, end_pos=block.end_pos)
            if word == "for":
                return self._for()
            if word == "emit":
                self._advance()
                invocation = self._invocation_expression()
                return ast.EmitStatement(invocation=invocation, start_pos=token.start, end_pos=invocation.end_pos)
            if word == "switch":
                return self._switch()
            if word == "remove" and self._token(1).kind == IDENTIFIER:
                self._advance()
                attachment = self._nominal_type()
                self._expect_keyword("from")
                value = self._expression()
                return ast.RemoveStatement(
                    attachment=attachment, value=value, start_pos=token.start, end_pos=value.end_pos
                )
            if word in ("let", "var"):
                return self._variable()
            if word in ("fun", "view") and self._token(1).kind == IDENTIFIER:
                is_view = word == "view"
                if is_view:
                    self._advance()
                return self._function(token.start, is_view=is_view)
            if word in ("access", "pub", "priv", "struct", "resource", "contract", "event", "enum"):
                if word not in ("access",) or self._token(1).kind == "(":
                    return self._declaration(context="function")

        expression = self._expression()
        following = self.current
        if following.kind == "<->":
            self._advance()
            right = self._expression()
            return ast.SwapStatement(left=expression, right=right, start_pos=expression.start_pos, end_pos=right.end_pos)
        if following.kind in TRANSFERS:
            transfer = self._advance().text
            value = self._expression()
            return ast.AssignmentStatement(
                target=expression,
                transfer=transfer,
                value=value,
                start_pos=expression.start_pos,
                end_pos=value.end_pos,
            )
        return ast.ExpressionStatement(expression=expression, start_pos=expression.start_pos, end_pos=expression.end_pos)

    def _if(self) -> ast.IfStatement:
        start = self._expect_keyword("if").start
        if self._at_keyword("let", "var"):
            test: Union[ast.Expression, ast.VariableDeclaration] = self._variable()
        else:
            test = self._expression()
        then = self._block()
        otherwise: Optional[Union[ast.Block, ast.IfStatement]] = None
        end = then.end_pos
        if self._at_keyword("else"):
            self._advance()
            otherwise = self._if() if self._at_keyword("if") else self._block()
            end = otherwise.end_pos
        return ast.IfStatement(test=test, then=then, otherwise=otherwise, start_pos=start, end_pos=end)

    def _for(self) -> ast.ForStatement:
        start = self._expect_keyword("for").start
        index = None
        identifier = self._identifier()
        if self._accept(","):
            index = identifier
            identifier = self._identifier()
        self._expect_keyword("in")
        value = self._expression()
        block = self._block()
        return ast.ForStatement(
            identifier=identifier, index=index, value=value, block=block, start_pos=start, end_pos=block.end_pos
        )

    def _switch(self) -> ast.SwitchStatement:
        start = self._expect_keyword("switch").start
        expression = self._expression()
        self._expect("{")
        cases = []
        while not self._at("}"):
            if self._at_keyword("case"):
                self._advance()
                value: Optional[ast.Expression] = self._expression()
            elif self._at_keyword("default"):
                self._advance()
                value = None
            else:
                raise self._unexpected("`case` or `default`")
            self._expect(":")
            statements = []
            while not (self._at("}") or self._at_keyword("case", "default")):
                if self._accept(";"):
                    continue
                if self._at(EOF):
                    raise self._unexpected("token `}`")
                statements.append(self._statement())
            cases.append(ast.SwitchCase(expression=value, statements=statements))
        end = self._expect("}").end
        return ast.SwitchStatement(expression=expression, cases=cases, start_pos=start, end_pos=end)

    # Types

    def _type_annotation(self) -> ast.TypeAnnotation:
        start = self.current.start
        is_resource = bool(self._accept("@"))
        type_ = self._type()
        return ast.TypeAnnotation(is_resource=is_resource, type=type_, start_pos=start, end_pos=type_.end_pos)

    def _nominal_type(self) -> ast.NominalType:
        identifier = self._identifier()
        nested = []
        while self._at(".") and self._token(1).kind == IDENTIFIER:
            self._advance()
            nested.append(self._identifier())
        end = nested[-1].end_pos if nested else identifier.end_pos
        return ast.NominalType(identifier=identifier, nested=nested, start_pos=identifier.start_pos, end_pos=end)

    def _type(self) -> ast.TypeNode:
        type_ = self._primary_type()
        while True:
            token = self.current
            if token.kind == "?" and not token.newline_before:
                self._advance()
                type_ = ast.OptionalType(type=type_, start_pos=type_.start_pos, end_pos=token.end)
            elif token.kind == "??" and not token.newline_before:
                self._advance()
                inner = ast.OptionalType(type=type_, start_pos=type_.start_pos, end_pos=token.start)
                type_ = ast.OptionalType(type=inner, start_pos=type_.start_pos, end_pos=token.end)
            else:
                return type_

    def _type_arguments(self) -> List[ast.TypeAnnotation]:
        self._expect("<")
        arguments = []
        while not self._at(">"):
            arguments.append(self._type_annotation())
            if not self._accept(","):
                break
        self._expect(">")
        return arguments

    def _primary_type(self) -> ast.TypeNode:
        token = self.current
        start = token.start

        if token.kind == "[":
            self._advance()
            element = self._type()
            if self._accept(";"):
                size_token = self._expect(INTEGER)
                end = self._expect("]").end
                return ast.ConstantSizedType(
                    type=element, size=int(size_token.text.replace("_", ""), 0), start_pos=start, end_pos=end
                )
            end = self._expect("]").end
            return ast.VariableSizedType(type=element, start_pos=start, end_pos=end)

        if token.kind == "{":
            self._advance()
            if self._at("}"):
                end = self._advance().end
                return ast.IntersectionType(types=[], start_pos=start, end_pos=end)
            first = self._type()
            if self._accept(":"):
                value = self._type()
                end = self._expect("}").end
                return ast.DictionaryType(key_type=first, value_type=value, start_pos=start, end_pos=end)
            if not isinstance(first, ast.NominalType):
                raise InvalidSyntaxError("non-nominal type in intersection", first.start_pos, first.end_pos)
            types = [first]
            while self._accept(","):
                types.append(self._nominal_type())
            end = self._expect("}").end
            return ast.IntersectionType(types=types, start_pos=start, end_pos=end)

        if token.kind == "&":
            self._advance()
            referenced = self._type()
            return ast.ReferenceType(type=referenced, start_pos=start, end_pos=referenced.end_pos)

        if token.kind == "(":
            self._advance()
            inner = self._type()
            self._expect(")")
            return inner

        if token.is_keyword("auth"):
            self._advance()
            authorization = None
            if self._at("("):
                auth_start = self._advance().start
                is_mapping = bool(self._at_keyword("mapping") and self._advance())
                entitlements = [self._nominal_type()]
                is_disjoint = False
                while self._at(",") or self._at("|"):
                    is_disjoint = self._advance().kind == "|"
                    entitlements.append(self._nominal_type())
                auth_end = self._expect(")").end
                authorization = ast.Authorization(
                    entitlements=entitlements,
                    is_mapping=is_mapping,
                    is_disjoint=is_disjoint,
                    start_pos=auth_start,
                    end_pos=auth_end,
                )
            self._expect("&")
            referenced = self._type()
            return ast.ReferenceType(
                type=referenced, authorization=authorization, start_pos=start, end_pos=referenced.end_pos
            )

        if token.is_keyword("fun", "view") and (token.text == "fun" or self._token(1).is_keyword("fun")):
            is_view = token.text == "view"
            if is_view:
                self._advance()
            self._expect_keyword("fun")
            self._expect("(")
            parameter_types = []
            while not self._at(")"):
                parameter_types.append(self._type_annotation())
                if not self._accept(","):
                    break
            end = self._expect(")").end
            return_type = None
            if self._accept(":"):
                return_type = self._type_annotation()
                end = return_type.end_pos
            return ast.FunctionType(
                parameter_types=parameter_types,
                return_type=return_type,
                is_view=is_view,
                start_pos=start,
                end_pos=end,
            )

        if token.kind == IDENTIFIER:
            nominal = self._nominal_type()
            if self._at("<") and not self.current.newline_before:
                arguments = self._type_arguments()
                return ast.InstantiationType(
                    type=nominal, type_arguments=arguments, start_pos=start, end_pos=self._previous().end
                )
            return nominal

        raise self._unexpected("type")

    # Expressions

    def _expression(self, min_power: int = 0) -> ast.Expression:
        left = self._prefix_expression()
        while True:
            token = self.current

            if token.kind == "?" and TERNARY_POWER > min_power:
                self._advance()
                then = self._expression()
                self._expect(":")
                otherwise = self._expression(TERNARY_POWER - 1)
                left = ast.ConditionalExpression(
                    test=left, then=then, otherwise=otherwise, start_pos=left.start_pos, end_pos=otherwise.end_pos
                )
                continue

            if token.is_keyword("as") and CASTING_POWER > min_power:
                self._advance()
                operation = "as"
                following = self.current
                if following.kind in ("?", "!") and self._adjacent(token, following):
                    self._advance()
                    operation += following.kind
                annotation = self._type_annotation()
                left = ast.CastingExpression(
                    expression=left,
                    operation=operation,
                    type_annotation=annotation,
                    start_pos=left.start_pos,
                    end_pos=annotation.end_pos,
                )
                continue

            operation = token.kind
            width = 1
            if operation == ">" and self._token(1).kind == ">" and self._adjacent(token, self._token(1)):
                operation = ">>"
                width = 2
            power = BINARY_POWERS.get(operation)
            if power is None or power <= min_power:
                return left
            for _ in range(width):
                self._advance()
            right_power = power - 1 if operation in RIGHT_ASSOCIATIVE else power
            right = self._expression(right_power)
            left = ast.BinaryExpression(
                operation=operation, left=left, right=right, start_pos=left.start_pos, end_pos=right.end_pos
            )

    def _prefix_expression(self) -> ast.Expression:
        token = self.current
        if token.kind == "-":
            self._advance()
            operand = self.current
            if operand.kind in (INTEGER, FIXED_POINT) and self._adjacent(token, operand):
                literal = self._literal()
                if isinstance(literal, ast.IntegerExpression):
                    literal.value = -literal.value
                else:
                    literal.negative = True
                literal.start_pos = token.start
                return self._postfix(literal)
            expression = self._expression(PREFIX_POWER)
            return ast.UnaryExpression(
                operation="-", expression=expression, start_pos=token.start, end_pos=expression.end_pos
            )
        if token.kind in ("!", "<-"):
            self._advance()
            expression = self._expression(PREFIX_POWER)
            return ast.UnaryExpression(
                operation=token.kind, expression=expression, start_pos=token.start, end_pos=expression.end_pos
            )
        if token.kind == "&":
            self._advance()
            expression = self._expression(PREFIX_POWER)
            return ast.ReferenceExpression(expression=expression, start_pos=token.start, end_pos=expression.end_pos)
        return self._postfix(self._primary_expression())

    def _literal(self) -> ast.Expression:
        token = self._advance()
        if token.kind == INTEGER:
            digits = token.text.replace("_", "")
            value = int(digits[2:], token.base) if token.base != 10 else int(digits)
            return ast.IntegerExpression(
                value=value, base=token.base, literal=token.text, start_pos=token.start, end_pos=token.end
            )
        return ast.FixedPointExpression(negative=False, literal=token.text, start_pos=token.start, end_pos=token.end)

    def _primary_expression(self) -> ast.Expression:
        token = self.current
        start = token.start

        if token.kind in (INTEGER, FIXED_POINT):
            return self._literal()

        if token.kind == STRING:
            self._advance()
            return self._string_expression(token)

        if token.kind == "(":
            self._advance()
            expression = self._expression()
            self._expect(")")
            return expression

        if token.kind == "[":
            self._advance()
            values = []
            while not self._at("]"):
                values.append(self._expression())
                if not self._accept(","):
                    break
            end = self._expect("]").end
            return ast.ArrayExpression(values=values, start_pos=start, end_pos=end)

        if token.kind == "{":
            self._advance()
            entries = []
            while not self._at("}"):
                key = self._expression()
                self._expect(":")
                value = self._expression()
                entries.append(ast.DictionaryEntry(key=key, value=value))
                if not self._accept(","):
                    break
            end = self._expect("}").end
            return ast.DictionaryExpression(entries=entries, start_pos=start, end_pos=end)

        if token.kind == "/" and self._token(1).is_keyword(*PATH_DOMAINS) and self._token(2).kind == "/":
            self._advance()
            domain = self._advance().text
            self._advance()
            identifier = self._identifier()
            return ast.PathExpression(domain=domain, identifier=identifier, start_pos=start, end_pos=identifier.end_pos)

        if token.kind != IDENTIFIER:
            raise self._unexpected("expression")

        word = token.text
        if word in ("true", "false"):
            self._advance()
            return ast.BoolExpression(value=word == "true", start_pos=start, end_pos=token.end)
        if word == "nil":
            self._advance()
            return ast.NilExpression(start_pos=start, end_pos=token.end)
        if word == "create":
            self._advance()
            invocation = self._invocation_expression()
            return ast.CreateExpression(invocation=invocation, start_pos=start, end_pos=invocation.end_pos)
        if word == "destroy":
            self._advance()
            expression = self._expression(PREFIX_POWER)
            return ast.DestroyExpression(expression=expression, start_pos=start, end_pos=expression.end_pos)
        if word == "attach":
            self._advance()
            attachment = self._invocation_expression()
            self._expect_keyword("to")
            base = self._expression(PREFIX_POWER)
            return ast.AttachExpression(attachment=attachment, base=base, start_pos=start, end_pos=base.end_pos)
        if word in ("fun", "view") and (word == "fun" or self._token(1).is_keyword("fun")):
            is_view = word == "view"
            if is_view:
                self._advance()
            self._expect_keyword("fun")
            parameters = self._parameters()
            return_type = None
            if self._accept(":"):
                return_type = self._type_annotation()
            body = self._function_block()
            return ast.FunctionExpression(
                parameters=parameters,
                return_type=return_type,
                body=body,
                is_view=is_view,
                start_pos=start,
                end_pos=body.end_pos,
            )

        identifier = self._identifier()
        return ast.IdentifierExpression(identifier=identifier, start_pos=start, end_pos=identifier.end_pos)

    def _string_expression(self, token: Token) -> ast.Expression:
        if all(isinstance(part, str) for part in token.parts):
            return ast.StringExpression(value="".join(token.parts), start_pos=token.start, end_pos=token.end)
        values: List[str] = []
        expressions: List[ast.Expression] = []
        pending = ""
        for part in token.parts:
            if isinstance(part, str):
                pending += part
                continue
            values.append(pending)
            pending = ""
            source, position = part
            inner = Parser(source, position)
            expressions.append(inner._expression())
            if not inner._at(EOF):
                raise inner._unexpected("end of string template")
        values.append(pending)
        return ast.StringTemplateExpression(
            values=values, expressions=expressions, start_pos=token.start, end_pos=token.end
        )

    def _invocation_expression(self) -> ast.InvocationExpression:
        expression = self._expression(PREFIX_POWER)
        if not isinstance(expression, ast.InvocationExpression):
            raise InvalidSyntaxError("expected invocation", expression.start_pos, expression.end_pos)
        return expression

    def _arguments(self) -> List[ast.Argument]:
        self._expect("(")
        arguments = []
        while not self._at(")"):
            label = None
            if self._at(IDENTIFIER) and self._token(1).kind == ":":
                label = self._advance().text
                self._advance()
            arguments.append(ast.Argument(label=label, expression=self._expression()))
            if not self._accept(","):
                break
        self._expect(")")
        return arguments

    def _try_type_arguments(self) -> Optional[List[ast.TypeAnnotation]]:
        """Speculatively parse `<T, U>` followed by `(`; rewind on failure."""
        saved = self.pos
        saved_errors = len(self.soft_errors)
        try:
            arguments = self._type_arguments()
            if not self._at("(") or self.current.newline_before:
                raise _Backtrack()
            return arguments
        except (InvalidSyntaxError, _Backtrack):
            self.pos = saved
            del self.soft_errors[saved_errors:]
            return None

    def _postfix(self, expression: ast.Expression) -> ast.Expression:
        while True:
            token = self.current
            if token.kind in (".", "?.") and self._token(1).kind == IDENTIFIER:
                self._advance()
                identifier = self._identifier()
                expression = ast.MemberExpression(
                    expression=expression,
                    identifier=identifier,
                    optional=token.kind == "?.",
                    start_pos=expression.start_pos,
                    end_pos=identifier.end_pos,
                )
            elif token.kind == "(" and not token.newline_before:
                arguments = self._arguments()
                expression = ast.InvocationExpression(
                    invoked=expression,
                    type_arguments=[],
                    arguments=arguments,
                    start_pos=expression.start_pos,
                    end_pos=self._previous().end,
                )
            elif token.kind == "<" and not token.newline_before:
                type_arguments = self._try_type_arguments()
                if type_arguments is None:
                    return expression
                arguments = self._arguments()
                expression = ast.InvocationExpression(
                    invoked=expression,
                    type_arguments=type_arguments,
                    arguments=arguments,
                    start_pos=expression.start_pos,
                    end_pos=self._previous().end,
                )
            elif token.kind == "[" and not token.newline_before:
                self._advance()
                index = self._expression()
                end = self._expect("]").end
                expression = ast.IndexExpression(
                    target=expression, index=index, start_pos=expression.start_pos, end_pos=end
                )
            elif token.kind == "!" and not token.newline_before:
                self._advance()
                expression = ast.ForceExpression(
                    expression=expression, start_pos=expression.start_pos, end_pos=token.end
                )
            else:
                return expression


def parse_program(code) -> Tuple[Optional[ast.Program], Optional[ParserError]]:
    """Parse a complete program.

    Args:
        code: Source text or raw bytes (decoded as UTF-8).

    Returns:
        (program, error). ``program`` is None when a non-recoverable syntax
        error occurred; ``error`` is None when the program is clean.
    """
    parser = Parser(decode_source(code))
    try:
        program = parser.parse_program()
    except InvalidSyntaxError as e:
        return None, ParserError(parser.soft_errors + [e])
    if parser.soft_errors:
        return program, ParserError(list(parser.soft_errors))
    return program, None
