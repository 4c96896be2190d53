"""Name mangling for generic enum instantiations.

Every concrete instantiation of a generic enum becomes its own Go type, so
its name must be a valid, collision-free Go identifier built from the type
arguments.
"""
import re
from typing import Sequence

_ARRAY = re.compile(r"\[(\d+)\]")
_NON_IDENT = re.compile(r"[^0-9A-Za-z_]")
_UNDERSCORES = re.compile(r"_+")


def sanitize_type(type_str: str) -> str:
    """Turn a Go type string into an identifier fragment.

    Examples:
        int            -> int
        []string       -> arr_string
        [4]byte        -> arr4_byte
        *User          -> ptr_User
        map[string]int -> map_string_int
        pkg.Type       -> pkg_Type
    """
    s = type_str.replace(" ", "")
    s = _ARRAY.sub(r"arr\1_", s)
    s = (s
         .replace("[]", "arr_")
         .replace("*", "ptr_")
         .replace("map[", "map_")
         .replace("]", "_")
         .replace("<", "_")
         .replace(">", "")
         .replace(",", "_")
         .replace(".", "_"))
    s = _NON_IDENT.sub("_", s)
    return _UNDERSCORES.sub("_", s).strip("_")


def mangle_enum_name(base_name: str, type_args: Sequence[str]) -> str:
    """Generate the concrete Go type name for an enum instantiation.

    Format: base_name + "_" + sanitized type args joined by "_"

    Examples:
        Option<int>            -> Option_int
        Result<int, error>     -> Result_int_error
        Option<[]string>       -> Option_arr_string

    Args:
        base_name: Declared enum name
        type_args: Concrete type arguments, already rewritten so that nested
            generic references are mangled names themselves

    Returns:
        Mangled type name (the base name itself for non-generic enums)
    """
    if not type_args:
        return base_name
    return f"{base_name}_{'_'.join(sanitize_type(t) for t in type_args)}"
