"""
End-to-end runs of the provisioning pipeline against fakes.
"""

import json
import logging
from pathlib import Path

import pytest
import yaml

from garak_bootstrap.errors import EXIT_APPLICATION, EXIT_FAILURE, EXIT_OK, EXIT_VERIFICATION
from garak_bootstrap.main import build_parser, build_steps, main, run
from garak_bootstrap.lib.pkg import AptPackageManager
from garak_bootstrap.state_store import record_path_for
from garak_bootstrap.steps import restore_backups

from .conftest import PINNED
from .fakes import FakeEnvManager, FakeInstaller, FakeKeyStore, FakePackageManager, FakeVcs


def _source(ctx) -> Path:
    return Path(ctx.config.source_path)


def _keyring(ctx) -> Path:
    return Path(ctx.config.keyring_path)


def _record(ctx) -> dict:
    return json.loads(Path(record_path_for(ctx.log_path)).read_text())


def _seed_previous(ctx) -> None:
    _source(ctx).parent.mkdir(parents=True, exist_ok=True)
    _source(ctx).write_text("deb [signed-by=/old.gpg] https://old.example stable main\n")
    _keyring(ctx).parent.mkdir(parents=True, exist_ok=True)
    _keyring(ctx).write_bytes(b"old key")


class TestVerification:
    def test_lowercase_fingerprint_registers_source(self, make_ctx):
        """Scenario A: same fingerprint up to case."""
        ctx = make_ctx(keys=FakeKeyStore(PINNED.lower()))

        assert run(ctx) == EXIT_OK
        text = _source(ctx).read_text()
        assert f"signed-by={ctx.config.keyring_path}" in text
        assert ctx.config.repo_url in text
        assert ctx.reached("SOURCE_REGISTERED")

    def test_mismatch_restores_and_aborts(self, make_ctx):
        """Scenario B: different key, previous source in place."""
        packages = FakePackageManager()
        installer = FakeInstaller()
        ctx = make_ctx(keys=FakeKeyStore("B" * 40), packages=packages, installer=installer)
        _seed_previous(ctx)

        assert run(ctx) == EXIT_VERIFICATION

        assert _source(ctx).read_text().startswith("deb [signed-by=/old.gpg]")
        assert _keyring(ctx).read_bytes() == b"old key"
        assert "conda" not in packages.installed
        assert installer.calls == []
        assert ctx.state["trail"][-4:] == ["FPR_EXTRACTED", "MISMATCH", "RESTORED", "ABORTED"]
        assert not ctx.reached("SOURCE_REGISTERED")

    def test_mismatch_without_previous_leaves_nothing(self, make_ctx):
        ctx = make_ctx(keys=FakeKeyStore("B" * 40))

        assert run(ctx) == EXIT_VERIFICATION
        assert not _source(ctx).exists()
        assert not _keyring(ctx).exists()

    def test_mismatch_is_logged_and_recorded(self, make_ctx, caplog):
        ctx = make_ctx(keys=FakeKeyStore("B" * 40))
        run(ctx)

        assert f"Expected: {PINNED}" in caplog.text
        assert "Found:    " + "B" * 40 in caplog.text
        record = _record(ctx)
        assert record["decisions"]["fingerprint"] == {"expected": PINNED, "found": "B" * 40}
        assert record["execution"]["errors"][0]["type"] == "VerificationError"
        assert record["execution"]["exit_code"] == EXIT_VERIFICATION

    def test_unreadable_fingerprint_takes_same_path(self, make_ctx):
        ctx = make_ctx(keys=FakeKeyStore(None))
        _seed_previous(ctx)

        assert run(ctx) == EXIT_VERIFICATION
        assert "EXTRACT_FAIL" in ctx.state["trail"]
        assert "MISMATCH" not in ctx.state["trail"]
        assert ctx.state["trail"][-2:] == ["RESTORED", "ABORTED"]
        assert _keyring(ctx).read_bytes() == b"old key"

    def test_fresh_host_success(self, make_ctx):
        """Scenario C: nothing to back up, nothing to restore."""
        ctx = make_ctx()

        assert run(ctx) == EXIT_OK
        assert ctx.backups == []
        assert "RESTORED" not in ctx.state["trail"]
        assert _source(ctx).exists()

    def test_later_failure_keeps_new_source(self, make_ctx):
        """Scenario C, failing after registration: restore has nothing to move."""
        ctx = make_ctx(envs=FakeEnvManager(create_fails=True))

        assert run(ctx) == EXIT_FAILURE
        assert ctx.reached("SOURCE_REGISTERED")
        assert not ctx.reached("ENV_READY")
        assert ctx.backups == []
        assert "RESTORED" not in ctx.state["trail"]
        registered = _source(ctx).read_text()
        assert f"signed-by={ctx.config.keyring_path}" in registered

        restore_backups(ctx)
        assert _source(ctx).read_text() == registered
        assert _keyring(ctx).exists()

    def test_second_key_in_keyring_rejected(self, make_ctx):
        ctx = make_ctx(keys=FakeKeyStore(PINNED, extra_key="B" * 40))
        _seed_previous(ctx)

        assert run(ctx) == EXIT_VERIFICATION
        assert not ctx.reached("MATCH")
        assert not ctx.reached("SOURCE_REGISTERED")
        assert _source(ctx).read_text().startswith("deb [signed-by=/old.gpg]")
        assert _keyring(ctx).read_bytes() == b"old key"

    def test_existing_source_replaced_on_success(self, make_ctx):
        ctx = make_ctx()
        _seed_previous(ctx)

        assert run(ctx) == EXIT_OK
        assert "old.example" not in _source(ctx).read_text()
        assert len(ctx.backups) == 2

    def test_download_failure_aborts_and_restores(self, make_ctx):
        ctx = make_ctx(keys=FakeKeyStore(PINNED, download_fails=True))
        _seed_previous(ctx)

        assert run(ctx) == EXIT_FAILURE
        assert _source(ctx).read_text().startswith("deb [signed-by=/old.gpg]")
        assert _record(ctx)["execution"]["errors"][0]["type"] == "DownloadError"

    def test_base_package_failure_restores(self, make_ctx):
        ctx = make_ctx(packages=FakePackageManager(fail_on="update"))
        _seed_previous(ctx)

        assert run(ctx) == EXIT_FAILURE
        assert _source(ctx).exists()


class TestEnvironment:
    def test_existing_env_reused(self, make_ctx, caplog):
        """Scenario D."""
        envs = FakeEnvManager({"garak": "/opt/conda/envs/garak"})
        ctx = make_ctx(envs=envs)

        with caplog.at_level(logging.INFO):
            assert run(ctx) == EXIT_OK
        assert envs.created == []
        assert "skip-create" in caplog.text
        assert _record(ctx)["decisions"]["env"] == {"name": "garak", "created": False}

    def test_env_created_once(self, make_ctx):
        envs = FakeEnvManager()
        assert run(make_ctx(envs=envs)) == EXIT_OK
        assert run(make_ctx(envs=envs)) == EXIT_OK
        assert envs.created == [("garak", "python>=3.10,<=3.12")]

    def test_create_failure_is_fatal(self, make_ctx):
        installer = FakeInstaller()
        ctx = make_ctx(envs=FakeEnvManager(create_fails=True), installer=installer)

        assert run(ctx) == EXIT_FAILURE
        assert installer.calls == []
        # The new source was already published; it is not rolled back.
        assert _source(ctx).exists()


class TestInstallTiers:
    def test_manifest_absent(self, make_ctx):
        """Scenario E."""
        installer = FakeInstaller()
        ctx = make_ctx(installer=installer, vcs=FakeVcs(with_manifest=False))

        assert run(ctx) == EXIT_OK
        assert not installer.called("manifest")
        assert installer.called("editable")

    def test_manifest_present(self, make_ctx):
        installer = FakeInstaller()
        ctx = make_ctx(installer=installer, vcs=FakeVcs(with_manifest=True))

        assert run(ctx) == EXIT_OK
        assert ("manifest", str(Path(ctx.config.app_checkout_dir) / "requirements.txt")) in installer.calls

    def test_manifest_failure_does_not_block_app(self, make_ctx):
        installer = FakeInstaller(fail=["manifest"])
        ctx = make_ctx(installer=installer, vcs=FakeVcs(with_manifest=True))

        assert run(ctx) == EXIT_OK
        assert installer.called("editable")
        warnings = _record(ctx)["execution"]["warnings"]
        assert [w["step"] for w in warnings] == ["70_install_deps"]

    def test_baseline_failure_is_warning(self, make_ctx):
        installer = FakeInstaller(fail=["pip", "ipykernel"])
        ctx = make_ctx(installer=installer)

        assert run(ctx) == EXIT_OK
        assert len(_record(ctx)["execution"]["warnings"]) == 2

    def test_app_install_failure_is_fatal(self, make_ctx):
        """Scenario F."""
        envs = FakeEnvManager()
        ctx = make_ctx(installer=FakeInstaller(fail=["editable"]), envs=envs)

        assert run(ctx) == EXIT_APPLICATION
        assert not any(argv[:2] == ["python", "-c"] for argv in envs.ran)
        record = _record(ctx)
        assert record["execution"]["errors"][0]["type"] == "ApplicationInstallError"
        assert record["execution"]["ran_steps"][-1] == "80_install_app"

    def test_fresh_clone_failure_is_fatal(self, make_ctx):
        installer = FakeInstaller()
        ctx = make_ctx(installer=installer, vcs=FakeVcs(clone_fails=True))

        assert run(ctx) == EXIT_APPLICATION
        assert not installer.called("editable")

    def test_existing_record_clone_is_updated(self, make_ctx):
        vcs = FakeVcs()
        ctx = make_ctx(vcs=vcs)
        Path(ctx.config.app_record_dir).mkdir(parents=True)

        assert run(ctx) == EXIT_OK
        assert vcs.updated == [ctx.config.app_record_dir]
        assert vcs.cloned == [(ctx.config.app_repo_url, ctx.config.app_checkout_dir)]

    def test_stale_checkout_replaced(self, make_ctx):
        ctx = make_ctx()
        stale = Path(ctx.config.app_checkout_dir)
        stale.mkdir(parents=True)
        (stale / "leftover.txt").write_text("old")

        assert run(ctx) == EXIT_OK
        assert not (stale / "leftover.txt").exists()


class TestPostInstall:
    def test_import_failure_is_fatal(self, make_ctx, caplog):
        ctx = make_ctx(envs=FakeEnvManager(import_ok=False))

        assert run(ctx) == EXIT_APPLICATION
        assert "ModuleNotFoundError" in caplog.text
        assert "Traceback" in caplog.text
        assert not ctx.reached("VERIFIED")

    def test_cli_failure_is_only_a_warning(self, make_ctx):
        ctx = make_ctx(envs=FakeEnvManager(cli_ok=False))

        assert run(ctx) == EXIT_OK
        warnings = _record(ctx)["execution"]["warnings"]
        assert {w["step"] for w in warnings} == {"90_post_install_checks"}
        assert len(warnings) == 2

    def test_console_script_used_when_present(self, make_ctx):
        envs = FakeEnvManager(commands=["garak"])
        assert run(make_ctx(envs=envs)) == EXIT_OK
        assert ["garak", "--version"] in envs.ran
        assert ["garak", "--list_probes"] in envs.ran

    def test_module_fallback_without_console_script(self, make_ctx):
        envs = FakeEnvManager(commands=[])
        assert run(make_ctx(envs=envs)) == EXIT_OK
        assert ["python", "-m", "garak.__main__", "--list_probes"] in envs.ran
        assert ["garak", "--version"] not in envs.ran

    def test_script_lookup_failure_falls_back_to_module(self, make_ctx):
        envs = FakeEnvManager(lookup_fails=True)
        ctx = make_ctx(envs=envs)

        assert run(ctx) == EXIT_OK
        assert ctx.reached("VERIFIED")
        assert ["python", "-m", "garak.__main__", "--list_probes"] in envs.ran
        assert ["garak", "--version"] not in envs.ran
        warnings = _record(ctx)["execution"]["warnings"]
        assert len(warnings) == 1
        assert "console script" in warnings[0]["detail"]

    def test_probe_output_truncated(self, make_ctx, caplog):
        with caplog.at_level(logging.INFO):
            assert run(make_ctx()) == EXIT_OK
        assert "probes.p59" in caplog.text
        assert "probes.p60" not in caplog.text


class TestRun:
    def test_full_trail(self, make_ctx):
        ctx = make_ctx()
        assert run(ctx) == EXIT_OK
        assert ctx.state["trail"] == [
            "KEY_FETCHED",
            "KEY_DEARMORED",
            "KEY_INSTALLED",
            "FPR_EXTRACTED",
            "MATCH",
            "SOURCE_REGISTERED",
            "ENV_READY",
            "DEPS_INSTALLED",
            "APP_INSTALLED",
            "VERIFIED",
        ]

    def test_record_written_as_json(self, make_ctx):
        ctx = make_ctx()
        run(ctx)
        data = json.loads(Path(record_path_for(ctx.log_path)).read_text())
        assert data["execution"]["exit_code"] == EXIT_OK
        assert data["execution"]["ran_steps"] == [s.step_id for s in build_steps()]

    def test_apt_order(self, make_ctx):
        packages = FakePackageManager()
        assert run(make_ctx(packages=packages)) == EXIT_OK
        assert packages.calls == [
            ("update",),
            ("install", ("curl", "gnupg", "git", "unzip", "ca-certificates", "lsb-release")),
            ("update",),
            ("install", ("conda",)),
        ]

    def test_unexpected_error_propagates_after_record(self, make_ctx):
        class Broken:
            step_id = "99_broken"

            def run(self, ctx):
                raise KeyError("bug")

        ctx = make_ctx()
        with pytest.raises(KeyError):
            run(ctx, [Broken()])
        assert _record(ctx)["execution"]["errors"][0]["type"] == "KeyError"

    def test_unexpected_error_before_registration_restores(self, make_ctx):
        class Broken:
            step_id = "25_broken"

            def run(self, ctx):
                raise KeyError("bug")

        steps = build_steps()
        steps.insert(2, Broken())
        ctx = make_ctx()
        _seed_previous(ctx)

        with pytest.raises(KeyError):
            run(ctx, steps)
        assert _source(ctx).read_text().startswith("deb [signed-by=/old.gpg]")
        assert _keyring(ctx).read_bytes() == b"old key"

    def test_unexpected_error_after_registration_keeps_source(self, make_ctx):
        class Broken:
            step_id = "45_broken"

            def run(self, ctx):
                raise KeyError("bug")

        steps = build_steps()
        steps.insert(4, Broken())
        ctx = make_ctx()
        _seed_previous(ctx)

        with pytest.raises(KeyError):
            run(ctx, steps)
        assert "old.example" not in _source(ctx).read_text()

    def test_apt_permission_error_restores(self, make_ctx, monkeypatch):
        def denied(*args, **kwargs):
            raise PermissionError(13, "Permission denied", "apt-get")

        monkeypatch.setattr("garak_bootstrap.lib.command.subprocess.run", denied)
        ctx = make_ctx(packages=AptPackageManager())
        _seed_previous(ctx)

        assert run(ctx) == EXIT_FAILURE
        assert _source(ctx).read_text().startswith("deb [signed-by=/old.gpg]")
        assert _record(ctx)["execution"]["errors"][0]["type"] == "PackageManagerError"

    def test_yaml_record_path(self, make_ctx, host: Path):
        ctx = make_ctx()
        ctx.record_path = str(host / "records" / "install.yaml")

        assert run(ctx) == EXIT_OK
        data = yaml.safe_load(Path(ctx.record_path).read_text())
        assert data["execution"]["exit_code"] == EXIT_OK
        assert data["trail"][-1] == "VERIFIED"
        assert not Path(record_path_for(ctx.log_path)).exists()


class TestMain:
    def test_parser_defaults(self):
        args = build_parser().parse_args([])
        assert args.config is None
        assert args.env_name is None
        assert args.record is None

    def test_parser_record_flag(self):
        args = build_parser().parse_args(["--record", "/var/log/garak.yaml"])
        assert args.record == "/var/log/garak.yaml"

    def test_bad_config_exits_before_logging(self, capsys, tmp_path: Path):
        code = main(["--config", str(tmp_path / "missing.yaml"), "--home", str(tmp_path)])
        assert code == EXIT_FAILURE
        assert "ERROR: Config file not found" in capsys.readouterr().err

    def test_bad_fingerprint_flag(self, capsys, tmp_path: Path):
        code = main(["--expected-fingerprint", "1234", "--home", str(tmp_path)])
        assert code == EXIT_FAILURE
        assert "40 hex" in capsys.readouterr().err
