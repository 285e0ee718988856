# lartpc_geometry/expression_evaluator.py
import math
import asteval

MATH_FUNCTIONS = ('sin', 'cos', 'tan', 'asin', 'acos', 'atan', 'atan2',
                  'sqrt', 'exp', 'log', 'log10', 'pow', 'hypot', 'floor', 'ceil')

# Length unit is cm, angle unit is rad
UNIT_SYMBOLS = {
    'um': 1e-4, 'mm': 0.1, 'cm': 1.0, 'm': 100.0, 'km': 1e5,
    'rad': 1.0, 'mrad': 1e-3, 'deg': math.pi / 180.0, 'degree': math.pi / 180.0,
}


def create_configured_asteval():
    """Returns an asteval interpreter limited to arithmetic, math functions and unit symbols."""
    aeval = asteval.Interpreter(symtable={}, minimal=True, no_if=True, no_for=True, no_while=True, no_try=True)

    aeval.symtable.update({name: getattr(math, name) for name in MATH_FUNCTIONS})
    aeval.symtable.update({'abs': abs, 'min': min, 'max': max, 'pi': math.pi, 'PI': math.pi})
    aeval.symtable.update(UNIT_SYMBOLS)
    return aeval


class ExpressionEvaluator:
    """A safe expression evaluator for geometry parameters, using asteval."""

    def __init__(self):
        self.interpreter = create_configured_asteval()

    def add_symbol(self, name, value):
        self.interpreter.symtable[name] = value

    def has_symbol(self, name):
        return name in self.interpreter.symtable

    def evaluate(self, expression, defines=None):
        """
        Safely evaluates an expression string with optional extra symbols.

        Args:
            expression (str): The string expression to evaluate. Plain numbers are returned as floats.
            defines (dict, optional): name -> value symbols visible to this call only.

        Returns:
            tuple: A tuple containing (bool, result).
                   - If successful: (True, evaluated_value)
                   - If failed: (False, error_message_string)
        """
        if isinstance(expression, (int, float)) and not isinstance(expression, bool):
            return True, float(expression)

        # Save original state of symbols that might be overwritten
        saved_symbols = {}
        if defines:
            for name, value in defines.items():
                if name in self.interpreter.symtable:
                    saved_symbols[name] = self.interpreter.symtable[name]
                self.interpreter.symtable[name] = value

        try:
            result = self.interpreter.eval(str(expression), show_errors=False, raise_errors=True)
            return True, result
        except Exception as e:
            # asteval exceptions are descriptive and safe to show the user.
            return False, str(e)
        finally:
            # Don't let defines from one call leak into the next
            if defines:
                for name in defines:
                    if name in saved_symbols:
                        self.interpreter.symtable[name] = saved_symbols[name]
                    elif name in self.interpreter.symtable:
                        del self.interpreter.symtable[name]
