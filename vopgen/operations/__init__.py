from .array import DECLARATIONS as ARRAY_DECLARATIONS
from .bounds import DECLARATIONS as BOUNDS_DECLARATIONS
from .complex import DECLARATIONS as COMPLEX_DECLARATIONS
from .math import DECLARATIONS as MATH_DECLARATIONS
from .string import DECLARATIONS as STRING_DECLARATIONS

ALL_DECLARATIONS = {
    **MATH_DECLARATIONS,
    **ARRAY_DECLARATIONS,
    **COMPLEX_DECLARATIONS,
    **STRING_DECLARATIONS,
    **BOUNDS_DECLARATIONS,
}
