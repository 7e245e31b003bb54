"""
Apply a catalog of secrets and variables to many repositories at once.

Each target is processed by its own worker thread, and each value is an
independent unit of work: a failure is recorded and the worker moves on to the
next value. Unless errors are tolerated, the first failure sets a run-wide
cancellation event that every worker checks before starting its next unit.
Units already in flight are allowed to finish.

Workers return their own outcomes, which are merged once every worker has
finished, so no result list is shared between threads.
"""

import concurrent.futures
import logging
import threading
import typing

import attr

from . import sealing
from .errors import UnitError
from .github import RemoteStore
from .utils import EasyGHException
from .values import (
    Catalog, Kind, Outcome, PlaintextValue, RecipientKey, RunResult, Status,
    Target)

log = logging.getLogger(__name__)

Encrypt = typing.Callable[[bytes, bytes], bytes]


def unique(targets: typing.Iterable[Target]) -> typing.List[Target]:
    """Drop repeated targets, keeping the first occurrence of each."""
    seen: typing.Set[Target] = set()
    result: typing.List[Target] = []
    for target in targets:
        if target in seen:
            log.warning(f"Ignoring repeated repository {target}")
            continue
        seen.add(target)
        result.append(target)
    return result


@attr.s(frozen=True, kw_only=True)
class Dispatcher:
    store: RemoteStore = attr.ib()
    dry_run: bool = attr.ib(default=False)
    continue_on_error: bool = attr.ib(default=False)
    encrypt: Encrypt = attr.ib(default=sealing.seal, repr=False)

    def run(
            self,
            targets: typing.Iterable[Target],
            catalog: Catalog,
            cancel: typing.Optional[threading.Event] = None) -> RunResult:
        """
        Process every target concurrently and collect their outcomes.

        Setting `cancel` stops workers before their next unit; it is also set
        by the first failure unless errors are tolerated.
        """
        targets = unique(targets)
        result = RunResult()
        if not targets:
            return result

        log.info(f"Processing {len(catalog)} values for {len(targets)} repositories"
                 + (" (dry run)" if self.dry_run else ""))
        if cancel is None:
            cancel = threading.Event()

        with concurrent.futures.ThreadPoolExecutor(
                max_workers=len(targets),
                thread_name_prefix='easygh') as executor:
            futures = [executor.submit(self.process, target, catalog, cancel)
                       for target in targets]

        for future in futures:
            result.extend(future.result())

        log.info(f"Finished: {result.summary()}")
        return result

    def process(
            self,
            target: Target,
            catalog: Catalog,
            cancel: threading.Event) -> typing.List[Outcome]:
        """Apply every value in the catalog to one target."""
        log.info(f"Processing repository {target}")
        outcomes: typing.List[Outcome] = []

        for value in catalog:
            if cancel.is_set():
                log.info(f"Stopping {target} after a failure elsewhere")
                break

            outcome = self.apply(target, value)
            outcomes.append(outcome)

            if outcome.failed and not self.continue_on_error and not cancel.is_set():
                log.warning(f"Cancelling remaining work after failure in {target}")
                cancel.set()

        return outcomes

    def apply(self, target: Target, value: PlaintextValue) -> Outcome:
        try:
            if self.dry_run:
                return self.preview(target, value)
            if value.kind is Kind.SECRET:
                self.write_secret(target, value)
            else:
                self.write_variable(target, value)
        except EasyGHException as cause:
            error = UnitError(target, value, cause)
            log.info(f"Failed: {error.message}")
            return Outcome(
                target=target, value=value, status=Status.FAILED, error=error)

        outcome = Outcome(target=target, value=value, status=Status.SET)
        log.info(str(outcome))
        return outcome

    def recipient_key(self, target: Target, value: PlaintextValue) -> RecipientKey:
        """Fetch the current public key for the value's scope."""
        environment = value.scope.environment
        if environment is None:
            return self.store.get_public_key(target.owner, target.repository)
        return self.store.get_environment_public_key(
            target.owner, target.repository, environment)

    def write_secret(self, target: Target, value: PlaintextValue) -> None:
        key = self.recipient_key(target, value)
        encrypted = self.encrypt(value.value.encode('utf-8'), key.key)
        environment = value.scope.environment
        if environment is None:
            self.store.create_or_update_secret(
                target.owner, target.repository, value.name, encrypted, key.key_id)
        else:
            self.store.create_or_update_environment_secret(
                target.owner, target.repository, environment, value.name,
                encrypted, key.key_id)

    def write_variable(self, target: Target, value: PlaintextValue) -> None:
        environment = value.scope.environment
        if environment is None:
            self.store.set_variable(
                target.owner, target.repository, value.name, value.value)
        else:
            self.store.set_environment_variable(
                target.owner, target.repository, environment, value.name,
                value.value)

    def preview(self, target: Target, value: PlaintextValue) -> Outcome:
        """
        Report what a write would do without changing anything.

        Only checks whether the value already exists; secrets are neither
        fetched nor encrypted. Any failed lookup is reported as a create.
        """
        environment = value.scope.environment
        owner, repo = target.owner, target.repository
        detail = None
        try:
            if value.kind is Kind.SECRET and environment is None:
                self.store.get_secret(owner, repo, value.name)
            elif value.kind is Kind.SECRET:
                self.store.get_environment_secret(owner, repo, environment, value.name)
            else:
                if environment is None:
                    existing = self.store.get_variable(owner, repo, value.name)
                else:
                    existing = self.store.get_environment_variable(
                        owner, repo, environment, value.name)
                detail = f"{existing.value} -> {value.display}"
        except EasyGHException as error:
            log.debug(f"No existing {value} in {target}: {error.message}")
            status = Status.WOULD_CREATE
        else:
            status = Status.WOULD_UPDATE

        outcome = Outcome(target=target, value=value, status=status, detail=detail)
        log.info(str(outcome))
        return outcome
