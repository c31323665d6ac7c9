from dataclasses import dataclass, field
from typing import Any


Fld = int


@dataclass
class Var:
    # Every variable of a constraint system is a linear combination of the entries of its assignment
    # vector, represented by a dictionary that maps wire indices to their coefficients, for example,
    # x = w₀ + 5w₂ + 7w₃ is {0: 1, 2: 5, 3: 7}. Entries with coefficient 0 are always omitted, and the
    # constant term of a combination is the coefficient of wire 0, which always holds the value 1.
    # Constants on their own are represented by the integer itself.
    # The tag identifies the constraint system that owns the wires.

    data: dict[int, Fld] = field(default_factory=lambda: {})
    tag: int | None = None


Gal = Var | Fld


Gate = tuple[Gal, Gal, Gal, str]
Value = Fld | None  # Known(value) | Unknown
Args = dict[str, Any]
