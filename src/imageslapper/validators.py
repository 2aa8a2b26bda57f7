"""
Validation functions for attr.
"""
import math

import attr
from attr.validators import in_

__all__ = ['in_', 'range_', 'positive', 'finite', 'to_rgba', 'to_optional_rgba']


@attr.s(repr=False, slots=True, hash=True)
class _RangeValidator(object):
    minimum = attr.ib()
    maximum = attr.ib()

    def __call__(self, inst, attr, value):
        try:
            range_options = self.minimum <= value and value <= self.maximum
        except TypeError:
            range_options = False

        if not range_options:
            raise ValueError(
                "'{name}' must be in range [{minimum!r}, {maximum!r}], "
                "got {value!r}".format(
                    name=attr.name,
                    minimum=self.minimum,
                    maximum=self.maximum,
                    value=value,
                )
            )

    def __repr__(self):
        return "<range_ validator with [{minimum!r}, {maximum!r}]".format(
            minimum=self.minimum, maximum=self.maximum
        )


def range_(minimum, maximum):
    """
    A validator that raises a :exc:`ValueError` if the initializer is called
    with a value that does not belong in the [minimum, maximum] range. The
    check is performed using ``minimum <= value and value <= maximum``
    """
    return _RangeValidator(minimum, maximum)


def finite(inst, attr, value):
    """A validator that rejects NaN and infinities."""
    if not math.isfinite(value):
        raise ValueError(
            "'{name}' must be finite, got {value!r}".format(
                name=attr.name, value=value
            )
        )


def positive(inst, attr, value):
    """
    A validator that raises a :exc:`ValueError` unless the value is finite and
    strictly greater than zero.
    """
    finite(inst, attr, value)
    if value <= 0:
        raise ValueError(
            "'{name}' must be strictly positive, got {value!r}".format(
                name=attr.name, value=value
            )
        )


def to_rgba(value):
    """
    Convert an RGB or RGBA sequence to a 4-tuple of ints in [0, 255].

    RGB input is treated as fully opaque.
    """
    try:
        components = [int(x) for x in value]
    except TypeError:
        raise TypeError("Color must be a sequence of ints, got %r" % (value,))
    if len(components) == 3:
        components.append(255)
    if len(components) != 4:
        raise ValueError(
            "Color must have 3 or 4 components, got %d" % len(components)
        )
    if any(x < 0 or x > 255 for x in components):
        raise ValueError("Color components must be in [0, 255], got %r" % (value,))
    return tuple(components)


def to_optional_rgba(value):
    """Same as :py:func:`to_rgba` but lets `None` through."""
    if value is None:
        return None
    return to_rgba(value)
