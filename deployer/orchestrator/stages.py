"""
Stage Runner - executes one deployment stage against one folder.

Every stage follows the same contract:
- already done in the record -> SKIPPED, no external call
- action succeeds -> flag set, record saved immediately, SUCCESS
- action fails -> nothing saved, FAILED (the next batch retries it)

Stage failures never propagate, so later stages of the same folder still run.
"""
import logging
import random
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from ..models import (
    STAGE_ORDER,
    DeployConfig,
    FolderUnit,
    StageName,
    StageResult,
)
from ..protocols import IHostProvider, IVersionControlHost
from ..services.github import CreateFailure, classify_create_failure
from ..services.progress_store import ProgressStore
from ..utils.naming import with_random_suffix
from ..utils.retry import retry_async

logger = logging.getLogger(__name__)


class StageFailed(Exception):
    """Raised inside a stage action to end it with a FAILED result."""


class NameTakenError(Exception):
    """Repository name already used by an unrelated repository."""

    def __init__(self, name: str):
        super().__init__(f"name '{name}' is taken")
        self.name = name


class StageRunner:
    """Runs GitHub / Vercel / Netlify stages and records their success."""

    def __init__(
        self,
        store: ProgressStore,
        github: IVersionControlHost,
        vercel: IHostProvider,
        netlify: IHostProvider,
        config: Optional[DeployConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize stage runner.

        Args:
            store: ProgressStore used to persist each success
            github: Version-control host
            vercel: Host A provider
            netlify: Host B provider
            config: DeployConfig
            rng: Random source for name disambiguators
        """
        self._store = store
        self._github = github
        self._vercel = vercel
        self._netlify = netlify
        self._config = config or DeployConfig()
        self._rng = rng or random.Random()
        self._actions: Dict[StageName, Callable[[FolderUnit], Awaitable[str]]] = {
            StageName.GITHUB: self._publish_github,
            StageName.VERCEL: self._deploy_vercel,
            StageName.NETLIFY: self._deploy_netlify,
        }

    async def run(self, unit: FolderUnit, stage: StageName) -> StageResult:
        """Run one stage unless the record already has it done."""
        if unit.record.is_done(stage):
            logger.info(f"{unit.name}: {stage.label} already done")
            return StageResult.already_done(stage)

        logger.info(f"{unit.name}: running {stage.label}")
        try:
            detail = await self._actions[stage](unit)
        except StageFailed as e:
            logger.error(f"{unit.name}: {stage.label} failed: {e}")
            return StageResult.fail(stage, str(e))
        except Exception as e:
            logger.error(f"{unit.name}: {stage.label} failed unexpectedly: {e}", exc_info=True)
            return StageResult.fail(stage, f"{type(e).__name__}: {e}")

        unit.record.mark_done(stage)
        self._store.save(unit.path, unit.record)
        logger.info(f"{unit.name}: {stage.label} done ({detail})")
        return StageResult.ok(stage, detail)

    async def run_all(
        self,
        unit: FolderUnit,
        stages: Iterable[StageName] = STAGE_ORDER,
    ) -> List[StageResult]:
        """Run stages in fixed order, each regardless of earlier outcomes."""
        wanted = set(stages)
        results = []
        for stage in STAGE_ORDER:
            if stage in wanted:
                results.append(await self.run(unit, stage))
        return results

    # GitHub

    async def _publish_github(self, unit: FolderUnit) -> str:
        await self._github.prepare(unit.path)

        base = unit.record.identity
        # Only written to the record once gh has accepted it.
        candidate = base

        async def attempt() -> str:
            name = candidate
            logger.info(f"{unit.name}: creating repository '{name}'")
            result = await self._github.create_and_publish(name, unit.path)
            if result.ok:
                return f"created {name}"

            failure = classify_create_failure(result)
            if failure is CreateFailure.NAME_TAKEN:
                raise NameTakenError(name)
            if failure is CreateFailure.REMOTE_EXISTS:
                logger.info(f"{unit.name}: origin already configured, pushing")
                pushed = await self._github.push_existing(unit.path)
                if pushed is not None and pushed.ok:
                    return f"pushed to existing {name}"
                # The remote exists, so the repository is published already.
                logger.warning(
                    f"{unit.name}: push to existing origin failed: "
                    f"{pushed.summary() if pushed is not None else 'no branches configured'}"
                )
                return f"existing {name}"
            raise StageFailed(f"gh repo create '{name}': {result.summary()}")

        def next_candidate(exc: BaseException, attempt_no: int) -> None:
            nonlocal candidate
            candidate = with_random_suffix(base, self._config.name_suffix_max, self._rng)
            logger.warning(f"{unit.name}: {exc}, retrying as '{candidate}'")

        outcome = await retry_async(
            attempt,
            is_retryable=lambda exc: isinstance(exc, NameTakenError),
            max_attempts=self._config.max_name_attempts,
            on_retry=next_candidate,
        )
        if not outcome.success:
            raise StageFailed(
                f"no free repository name after {outcome.attempts} attempts ({outcome.error})"
            )
        unit.record.rename(candidate)
        return outcome.value

    # Hosts

    async def _deploy_vercel(self, unit: FolderUnit) -> str:
        return await self._deploy_host(unit, self._vercel, StageName.VERCEL)

    async def _deploy_netlify(self, unit: FolderUnit) -> str:
        return await self._deploy_host(unit, self._netlify, StageName.NETLIFY)

    async def _deploy_host(self, unit: FolderUnit, provider: IHostProvider, stage: StageName) -> str:
        if not provider.is_linked(unit.path):
            name = with_random_suffix(unit.record.identity, self._config.name_suffix_max, self._rng)
            try:
                linked = await provider.provision(name, unit.path)
            except Exception as e:
                # Deploy can still infer the target from the folder.
                logger.warning(f"{unit.name}: {stage.label} provisioning failed: {e}")
                linked = None
            if linked:
                logger.info(f"{unit.name}: linked {stage.label} site {linked}")
            else:
                logger.info(f"{unit.name}: {stage.label} not linked, deploying anyway")

        result = await provider.deploy(unit.path)
        if not result.ok:
            raise StageFailed(f"{stage.label} deploy: {result.summary()}")
        return "deployed"
