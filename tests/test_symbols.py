from robcmp.symbols import DataQualifier, RobSymbol, SymbolTable


def test_lookup_order():
    table = SymbolTable("global")
    g = table.define("global", "x", RobSymbol("g"))
    local = table.define("fn", "x", RobSymbol("l"))
    assert table.lookup("x", "fn") is local
    assert table.lookup("x", "other") is g
    assert table.lookup("x") is g


def test_missing_and_none_scope():
    table = SymbolTable(None)
    table.define(None, "y", RobSymbol(1))
    assert table.lookup("y") is None
    assert table.lookup("nothing", "a", "b") is None


def test_symbol_defaults():
    s = RobSymbol(5)
    assert s.qualifier is DataQualifier.NONE
    assert (s.matrix_lines, s.matrix_cols, s.pointer_type) == (0, 0, None)