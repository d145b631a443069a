class SheetEngineError(Exception):
    pass


class FormulaError(SheetEngineError):
    """Base class for failures while tokenizing, parsing or evaluating a formula."""


class TokenizerError(FormulaError):
    pass


class ParseError(FormulaError):
    pass


class CoercionError(FormulaError):
    pass


class FunctionError(FormulaError):
    pass


class UnknownFunction(FormulaError):
    pass


class NameNotFound(FormulaError):
    pass


class CycleError(FormulaError):
    pass


class GridBoundsError(SheetEngineError, IndexError):
    pass


class SaveError(SheetEngineError):
    pass
