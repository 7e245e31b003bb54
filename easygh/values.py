import enum
import typing

import attr

from .utils import mask_secret


class Kind(enum.Enum):
    SECRET = 'secret'
    VARIABLE = 'variable'

    def __str__(self):
        return self.value


@attr.s(frozen=True)
class Scope:
    """Repository scope, or the scope of one deployment environment."""

    environment: typing.Optional[str] = attr.ib(default=None)

    @property
    def kind(self) -> str:
        return 'repository' if self.environment is None else 'environment'

    def __str__(self):
        if self.environment is None:
            return 'repository'
        return f"environment '{self.environment}'"


REPOSITORY = Scope()


def _non_empty(instance, attribute, value):
    if not value:
        raise ValueError(f"{attribute.name} must not be empty")


@attr.s(frozen=True, kw_only=True)
class PlaintextValue:
    name: str = attr.ib(validator=_non_empty)
    value: str = attr.ib(repr=False)
    kind: Kind = attr.ib()
    scope: Scope = attr.ib(default=REPOSITORY)

    @property
    def secret(self) -> bool:
        return self.kind is Kind.SECRET

    @property
    def display(self) -> str:
        """The value as it may be shown in logs and previews."""
        return mask_secret(self.value) if self.secret else self.value

    def __str__(self):
        return f"{self.scope.kind} {self.kind} {self.name}"


@attr.s(frozen=True)
class Target:
    owner: str = attr.ib(validator=_non_empty)
    repository: str = attr.ib(validator=_non_empty)

    def __str__(self):
        return f"{self.owner}/{self.repository}"


@attr.s(frozen=True)
class RecipientKey:
    key_id: str = attr.ib()
    key: bytes = attr.ib(repr=False)


@attr.s(frozen=True)
class Catalog:
    """
    The values written to every target, in processing order.

    Repository secrets come first, then environment secrets, repository
    variables and environment variables.
    """

    values: typing.Tuple[PlaintextValue, ...] = attr.ib(converter=tuple)

    def __iter__(self) -> typing.Iterator[PlaintextValue]:
        return iter(self.values)

    def __len__(self):
        return len(self.values)

    @classmethod
    def build(
            cls,
            repository_secrets: typing.Mapping[str, str],
            environment_secrets: typing.Mapping[str, typing.Mapping[str, str]],
            repository_variables: typing.Mapping[str, str],
            environment_variables: typing.Mapping[str, typing.Mapping[str, str]],
    ) -> 'Catalog':
        values: typing.List[PlaintextValue] = []
        values.extend(_scoped(Kind.SECRET, REPOSITORY, repository_secrets))
        for environment in sorted(environment_secrets):
            values.extend(_scoped(
                Kind.SECRET, Scope(environment), environment_secrets[environment]))
        values.extend(_scoped(Kind.VARIABLE, REPOSITORY, repository_variables))
        for environment in sorted(environment_variables):
            values.extend(_scoped(
                Kind.VARIABLE, Scope(environment), environment_variables[environment]))
        return cls(values)


def _scoped(
        kind: Kind,
        scope: Scope,
        values: typing.Mapping[str, str]) -> typing.List[PlaintextValue]:
    return [PlaintextValue(name=name, value=values[name], kind=kind, scope=scope)
            for name in sorted(values)]


class Status(enum.Enum):
    SET = 'set'
    WOULD_CREATE = 'would create'
    WOULD_UPDATE = 'would update'
    FAILED = 'failed'


@attr.s(frozen=True, kw_only=True)
class Outcome:
    """The result of processing one value for one target."""

    target: Target = attr.ib()
    value: PlaintextValue = attr.ib()
    status: Status = attr.ib()
    error: typing.Optional[Exception] = attr.ib(default=None)
    detail: typing.Optional[str] = attr.ib(default=None)

    @property
    def failed(self) -> bool:
        return self.status is Status.FAILED

    @property
    def where(self) -> str:
        if self.value.scope.environment is None:
            return str(self.target)
        return f"{self.target} ({self.value.scope})"

    def __str__(self):
        if self.failed:
            return str(self.error)
        if self.status is Status.SET:
            return f"Set {self.value.kind} {self.value.name} in {self.where}"
        return (f"{self.status.value.capitalize()} {self.value.kind} "
                f"{self.value.name} in {self.where}: "
                f"{self.detail or self.value.display}")


@attr.s
class RunResult:
    outcomes: typing.List[Outcome] = attr.ib(factory=list)

    def extend(self, outcomes: typing.Iterable[Outcome]) -> None:
        self.outcomes.extend(outcomes)

    @property
    def errors(self) -> typing.List[Exception]:
        return [o.error for o in self.outcomes if o.failed and o.error is not None]

    @property
    def successes(self) -> typing.List[Outcome]:
        return [o for o in self.outcomes if not o.failed]

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    def summary(self) -> str:
        if self.failed:
            return f"failed with {len(self.errors)} error(s)"
        return "Successfully completed"
