from typing import Dict, Iterable, List, Optional

from .capabilities.composition import ResolvedDefaults, compose
from .catalog.declarations import OperationDeclaration
from .exceptions import ErrorCode, VopgenError
from .operations import ALL_DECLARATIONS


class OperationRegistry:
    """
    Holds every operation declaration by name, together with its resolved
    defaults. Declarations are composed as they are registered, so a broken
    declaration is rejected before anything is expanded.
    """

    def __init__(self, declarations: Optional[Iterable[OperationDeclaration]] = None):
        self._declarations: Dict[str, OperationDeclaration] = {}
        self._resolved: Dict[str, ResolvedDefaults] = {}
        for declaration in declarations or ():
            self.register(declaration)

    @classmethod
    def default(cls) -> "OperationRegistry":
        """A registry holding the shipped operation catalog."""
        return cls(ALL_DECLARATIONS.values())

    def register(self, declaration: OperationDeclaration) -> ResolvedDefaults:
        if declaration.name in self._declarations:
            raise VopgenError(ErrorCode.DUPLICATE_DECLARATION, declaration=declaration.name, name=declaration.name)
        resolved = compose(declaration)
        self._declarations[declaration.name] = declaration
        self._resolved[declaration.name] = resolved
        return resolved

    def get(self, name: str) -> OperationDeclaration:
        if name not in self._declarations:
            raise VopgenError(ErrorCode.UNKNOWN_OPERATION, name=name)
        return self._declarations[name]

    def resolved(self, name: str) -> ResolvedDefaults:
        self.get(name)
        return self._resolved[name]

    def select(self, names: Optional[Iterable[str]] = None) -> "OperationRegistry":
        """A registry restricted to the named operations, in the order given."""
        if not names:
            return self
        subset = OperationRegistry()
        for name in names:
            subset._declarations[name] = self.get(name)
            subset._resolved[name] = self._resolved[name]
        return subset

    @property
    def names(self) -> List[str]:
        return list(self._declarations)

    def declarations(self) -> List[OperationDeclaration]:
        return list(self._declarations.values())

    def __contains__(self, name: str) -> bool:
        return name in self._declarations

    def __len__(self) -> int:
        return len(self._declarations)
