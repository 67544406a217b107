from __future__ import annotations

from ..lib.conda import ensure
from ..pipeline import Outcome


class EnsureEnvStep:
    step_id = "60_ensure_env"

    def run(self, ctx) -> Outcome:
        cfg = ctx.config
        created = ensure(ctx.envs, cfg.env_name, cfg.python_spec)
        ctx.decide("env", {"name": cfg.env_name, "created": created})
        ctx.reach("ENV_READY")
        return Outcome.ok()
