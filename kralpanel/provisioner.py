# kralpanel/provisioner.py
# -*- coding: utf-8 -*-
"""
Runs the registered provisioning steps in order.

The run stops at the first failing step. Nothing is rolled back; re-running
from scratch is the recovery path, and every step is written so that a re-run
is safe.
"""

import contextlib
import importlib
import logging
import os
import pkgutil
from typing import Dict, Iterable, List, Optional

from common.command_utils import log_message
from common.file_utils import LockHeldError, exclusive_lock
from kralpanel.base_step import BaseStep
from kralpanel.config_models import AppSettings
from kralpanel.context import ProvisionContext, ProvisionResult
from kralpanel.credentials import CredentialProvider
from kralpanel.errors import ConcurrentRunError, ProvisionError
from kralpanel.registry import StepRegistry

module_logger = logging.getLogger(__name__)

PRIVILEGE_STEP = "privilege"
LOCK_STEP = "lock"


def load_all_steps(logger: Optional[logging.Logger] = None) -> None:
    """Import every module in kralpanel.steps so that its step registers."""
    logger_to_use = logger or module_logger
    import kralpanel.steps

    steps_path = os.path.dirname(kralpanel.steps.__file__)
    for _, module_name, _ in pkgutil.iter_modules([steps_path]):
        importlib.import_module(f"kralpanel.steps.{module_name}")
        logger_to_use.debug(f"Imported step module: {module_name}")


class Provisioner:
    """
    Executes provisioning steps against the local host.

    Steps are instantiated fresh for every run and share a single
    ProvisionContext. A lock file is held from just after the privilege check
    until the run ends so that two runs cannot interleave on one host.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
        credential_provider: Optional[CredentialProvider] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.credential_provider = credential_provider
        load_all_steps(self.logger)

    def plan(self, step_names: Optional[Iterable[str]] = None) -> List[str]:
        """
        Returns the steps to run, in execution order.

        With no selection every registered step runs. A selection runs only
        the named steps, in canonical order, always preceded by the privilege
        check.

        Raises:
            KeyError: A selected step is not registered.
        """
        full_order = StepRegistry.full_order()
        if not step_names:
            return full_order
        selected = set(step_names)
        unknown = selected - set(full_order)
        if unknown:
            raise KeyError(
                f"Unknown step(s): {', '.join(sorted(unknown))}. "
                f"Available: {', '.join(full_order)}"
            )
        selected.add(PRIVILEGE_STEP)
        return [name for name in full_order if name in selected]

    def _build_step(self, name: str) -> BaseStep:
        step_class = StepRegistry.get_step(name)
        kwargs: Dict[str, object] = {}
        if name == "artifact" and self.credential_provider is not None:
            kwargs["credential_provider"] = self.credential_provider
        return step_class(self.app_settings, self.logger, **kwargs)

    def run(
        self,
        step_names: Optional[Iterable[str]] = None,
        context: Optional[ProvisionContext] = None,
    ) -> ProvisionResult:
        """
        Run the planned steps, halting on the first failure.

        Returns:
            ProvisionResult with success, the failed step name and a message.
        """
        symbols = self.app_settings.symbols
        context = context or ProvisionContext()
        try:
            plan = self.plan(step_names)
        except KeyError as e:
            return ProvisionResult(
                success=False, failed_step=None, message=str(e.args[0])
            )

        completed: List[str] = []
        with contextlib.ExitStack() as stack:
            for index, name in enumerate(plan, start=1):
                step = self._build_step(name)
                log_message(
                    f"--- {symbols.get('step', '➡️')} Stage {index}/{len(plan)}: {step.get_description() or name} ({name}) ---",
                    "info",
                    self.logger,
                    self.app_settings,
                )
                try:
                    step.run(context)
                except ProvisionError as e:
                    e.step = e.step or name
                    return self._failure_from(e, completed)
                except Exception as e:
                    self.logger.critical(
                        f"{symbols.get('critical', '🔥')} Unexpected error in step '{name}': {e}",
                        exc_info=True,
                    )
                    return self._failure(name, f"Unexpected error: {e}", completed)

                completed.append(name)
                log_message(
                    f"--- {symbols.get('success', '✅')} Completed: {name} ---",
                    "info",
                    self.logger,
                    self.app_settings,
                )

                if name == PRIVILEGE_STEP:
                    try:
                        stack.enter_context(exclusive_lock(self.app_settings.lock_file))
                    except LockHeldError as e:
                        return self._failure_from(
                            ConcurrentRunError(
                                f"Another installation is already running ({e}).",
                                step=LOCK_STEP,
                            ),
                            completed,
                        )
                    except OSError as e:
                        return self._failure(
                            LOCK_STEP,
                            f"Could not take lock {self.app_settings.lock_file}: {e}",
                            completed,
                        )

        log_message(
            f"{symbols.get('sparkles', '✨')} Provisioning finished successfully.",
            "info",
            self.logger,
            self.app_settings,
        )
        return ProvisionResult(
            success=True, message="Installation successful", completed_steps=completed
        )

    def _failure_from(
        self, error: ProvisionError, completed: List[str]
    ) -> ProvisionResult:
        return self._failure(error.step or "", error.message, completed)

    def _failure(
        self, step: str, message: str, completed: List[str]
    ) -> ProvisionResult:
        log_message(
            f"{self.app_settings.symbols.get('error', '❌')} Step '{step}' failed: {message}",
            "error",
            self.logger,
            self.app_settings,
        )
        return ProvisionResult(
            success=False,
            failed_step=step,
            message=message,
            completed_steps=list(completed),
        )
