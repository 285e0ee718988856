import pytest
from lartpc_geometry.expression_evaluator import ExpressionEvaluator

def test_basic_math():
    evaluator = ExpressionEvaluator()
    success, result = evaluator.evaluate("2 + 2")
    assert success
    assert result == 4

def test_math_functions():
    evaluator = ExpressionEvaluator()
    success, result = evaluator.evaluate("sin(pi/2)")
    assert success
    assert abs(result - 1.0) < 1e-9

def test_plain_numbers_pass_through():
    evaluator = ExpressionEvaluator()
    assert evaluator.evaluate(3) == (True, 3.0)

def test_units_are_in_cm():
    evaluator = ExpressionEvaluator()
    assert evaluator.evaluate("3*mm")[1] == pytest.approx(0.3)
    assert evaluator.evaluate("2*m + 5*cm")[1] == pytest.approx(205.0)
    assert evaluator.evaluate("180*deg")[1] == pytest.approx(3.141592653589793)
    assert evaluator.evaluate("max(10*um, 2*mm) + 20*mrad")[1] == pytest.approx(0.22)

def test_custom_symbols():
    evaluator = ExpressionEvaluator()
    evaluator.add_symbol("radius", 50)
    assert evaluator.has_symbol("radius")
    success, result = evaluator.evaluate("radius * 2")
    assert success
    assert result == 100

def test_defines_do_not_leak():
    evaluator = ExpressionEvaluator()
    evaluator.add_symbol("pitch", 0.3)

    success, result = evaluator.evaluate("pitch * n", defines={"pitch": 0.5, "n": 4})
    assert success
    assert result == pytest.approx(2.0)
    assert evaluator.evaluate("pitch")[1] == pytest.approx(0.3)
    assert not evaluator.has_symbol("n")

def test_error_handling():
    evaluator = ExpressionEvaluator()
    success, result = evaluator.evaluate("undefined_variable")
    assert not success
    assert isinstance(result, str)
