"""
Install errors — the failure kinds a recipe run can end with.

Services raise these. Adapters catch them and turn them into failed
Receipts tagged with ``error_kind`` so the engine can stop the run and
report which step broke and why.
"""

from __future__ import annotations


class RecipeError(Exception):
    """Base class for every failure raised while running a recipe."""

    kind = "recipe"


class FetchError(RecipeError):
    """The source could not be downloaded, cloned or extracted."""

    kind = "fetch"


class IntegrityError(RecipeError):
    """The fetched archive does not match the declared checksum."""

    kind = "integrity"

    def __init__(self, message: str, *, path: str = "", expected: str = "", actual: str = ""):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(message)

    @classmethod
    def mismatch(cls, path: str, expected: str, actual: str) -> IntegrityError:
        return cls(
            f"SHA-256 mismatch for {path}: expected {expected}, got {actual}",
            path=path,
            expected=expected,
            actual=actual,
        )


class BuildError(RecipeError):
    """The toolchain is missing or the build command failed."""

    kind = "build"


class CompletionError(RecipeError):
    """The built binary failed to emit a completion script."""

    kind = "completion"


class InstallError(RecipeError):
    """Staged files could not be moved into the install prefix."""

    kind = "install"


class SmokeTestFailure(RecipeError):
    """Captured output of the installed binary lacks an expected string."""

    kind = "assertion"


ERROR_KINDS: dict[str, type[RecipeError]] = {
    cls.kind: cls
    for cls in (
        RecipeError,
        FetchError,
        IntegrityError,
        BuildError,
        CompletionError,
        InstallError,
        SmokeTestFailure,
    )
}
