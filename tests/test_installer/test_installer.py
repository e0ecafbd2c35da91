"""Unit tests for Installer (vpkg.installer.installer).

Tests cover:
- Full installs (rendering, pass-through, metadata, receipts)
- Version, destination and alternate registry resolution
- The overwrite guard and dry runs (no side effects)
- Failure modes (missing package, discovery, render, fetch, module detection)
- Cancellation and progress events
- Removal and listing through the installer
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import pytest

from conftest import (
    REDIS_CACHE,
    REGISTRY_URL,
    REPO_BASE,
    REPO_META_URL,
    FakeRegistry,
    console_text,
    registry_index,
)
from vpkg.errors import (
    InstallCancelledError,
    ModuleDetectionError,
    NoTemplateFilesError,
    PackageExistsError,
    PackageNotFoundError,
    RegistryStatusError,
    TemplateRenderError,
)
from vpkg.installer.installer import Installer
from vpkg.installer.models import InstallOptions, InstallStep
from vpkg.installer.store import InstalledPackageStore
from vpkg.registry.models import PackageType


@pytest.fixture
def installer(registry_client, go_project, record_console) -> Installer:
    return Installer(registry_client, project_root=go_project, console=record_console)


def _default_dest(project: Path, name: str = "vandor/redis-cache") -> Path:
    return project.resolve() / "internal" / "vpkg" / name


def _file_requests(fake: FakeRegistry) -> list[str]:
    return [url for url in fake.urls() if "/packages/" in url]


# ---------------------------------------------------------------------------
# Successful installs
# ---------------------------------------------------------------------------


class TestInstall:
    @pytest.mark.unit
    def test_writes_rendered_files(self, installer: Installer, go_project: Path):
        result = installer.install("vandor/redis-cache")
        dest = _default_dest(go_project)

        assert result.destination == dest
        assert result.files == [dest / "service.go", dest / "README.md", dest / "config" / "config.go"]
        assert (dest / "service.go").read_text() == (
            "package rediscache\n"
            "\n"
            "// Redis Cache for github.com/acme/app\n"
            'const Name = "vandor/redis-cache"\n'
        )
        assert (dest / "README.md").read_text() == (
            "# Redis Cache\n\nInstalled at internal/vpkg/vandor/redis-cache.\n"
        )
        assert (dest / "config" / "config.go").read_text() == (
            "package rediscache\n\ntype RedisCacheConfig struct{}\n"
        )

    @pytest.mark.unit
    def test_template_extensions_stripped(self, installer: Installer, go_project: Path):
        installer.install("vandor/redis-cache")
        names = {p.name for p in _default_dest(go_project).rglob("*") if p.is_file()}
        assert names == {"service.go", "README.md", "config.go", "meta.yaml"}

    @pytest.mark.unit
    def test_writes_metadata(self, installer: Installer, go_project: Path):
        installer.install("vandor/redis-cache")
        store = InstalledPackageStore(go_project)
        record = store.load_metadata(_default_dest(go_project) / "meta.yaml")
        assert record.name == "vandor/redis-cache"
        assert record.version == "1.0.0"
        assert record.type == PackageType.FX_MODULE
        assert record.path == str(_default_dest(go_project))
        assert record.meta.dependencies == ["github.com/redis/go-redis/v9"]

    @pytest.mark.unit
    def test_probe_fallback_install(self, installer: Installer, go_project: Path):
        result = installer.install("vandor/hello-cli")
        dest = _default_dest(go_project, "vandor/hello-cli")
        assert result.files == [dest / "main.go"]
        assert (dest / "main.go").read_text() == "package main\n\n// Greets people\n"

    @pytest.mark.unit
    def test_locates_project_from_cwd(self, registry_client, go_project: Path, record_console, monkeypatch):
        sub = go_project / "cmd" / "api"
        sub.mkdir(parents=True)
        monkeypatch.chdir(sub)
        installer = Installer(registry_client, console=record_console)
        result = installer.install("vandor/redis-cache")
        assert result.destination == _default_dest(go_project)


class TestVersionResolution:
    @pytest.mark.unit
    def test_registry_version_by_default(self, installer: Installer):
        assert installer.install("vandor/redis-cache").version == "1.0.0"

    @pytest.mark.unit
    def test_spec_version_wins(self, installer: Installer, caplog):
        with caplog.at_level(logging.WARNING, logger="vpkg.installer.installer"):
            result = installer.install(
                "vandor/redis-cache@2.0.0", InstallOptions(version="3.0.0")
            )
        assert result.version == "2.0.0"
        assert "publishes vandor/redis-cache at version 1.0.0" in caplog.text

    @pytest.mark.unit
    def test_option_version_when_spec_has_none(self, installer: Installer):
        assert installer.install("vandor/redis-cache", InstallOptions(version="1.5.0")).version == "1.5.0"

    @pytest.mark.unit
    def test_version_reaches_templates_and_metadata(self, fake_registry: FakeRegistry, installer, go_project):
        fake_registry.add_text(f"{REPO_BASE}/packages/redis-cache/README.md.tmpl", "v{{.Version}}\n")
        installer.install("vandor/redis-cache@1.0.0")
        dest = _default_dest(go_project)
        assert (dest / "README.md").read_text() == "v1.0.0\n"
        assert "version: 1.0.0" in (dest / "meta.yaml").read_text()


class TestDestination:
    @pytest.mark.unit
    def test_relative_dest_joined_to_project(self, installer: Installer, go_project: Path):
        result = installer.install("vandor/redis-cache", InstallOptions(dest="pkg/cache"))
        dest = go_project.resolve() / "pkg" / "cache"
        assert result.destination == dest
        assert "Installed at pkg/cache." in (dest / "README.md").read_text()

    @pytest.mark.unit
    def test_absolute_dest(self, installer: Installer, tmp_path: Path):
        target = tmp_path / "elsewhere"
        result = installer.install("vandor/redis-cache", InstallOptions(dest=str(target)))
        assert result.destination == target
        assert (target / "service.go").is_file()

    @pytest.mark.unit
    def test_registry_destination(self, fake_registry: FakeRegistry, installer, go_project):
        fake_registry.add_yaml(
            REPO_META_URL, {"packages": [{**REDIS_CACHE, "destination": "internal/cache"}]}
        )
        result = installer.install("vandor/redis-cache")
        assert result.destination == go_project.resolve() / "internal" / "cache"

    @pytest.mark.unit
    def test_option_dest_beats_registry_destination(self, fake_registry: FakeRegistry, installer, go_project):
        fake_registry.add_yaml(
            REPO_META_URL, {"packages": [{**REDIS_CACHE, "destination": "internal/cache"}]}
        )
        result = installer.install("vandor/redis-cache", InstallOptions(dest="lib/redis"))
        assert result.destination == go_project.resolve() / "lib" / "redis"


class TestRegistryOption:
    ALT_REGISTRY = "https://alt.example.test/registry.yaml"

    @pytest.mark.unit
    def test_lookup_uses_alternate_registry(self, fake_registry: FakeRegistry, installer):
        fake_registry.add_yaml(self.ALT_REGISTRY, registry_index(("official", REPO_META_URL)))
        fake_registry.add_yaml(REGISTRY_URL, registry_index())

        result = installer.install(
            "vandor/redis-cache", InstallOptions(registry=self.ALT_REGISTRY, dry_run=True)
        )

        assert result.package.name == "vandor/redis-cache"
        assert self.ALT_REGISTRY in fake_registry.urls()
        assert REGISTRY_URL not in fake_registry.urls()

    @pytest.mark.unit
    def test_same_registry_uses_client(self, fake_registry: FakeRegistry, installer):
        installer.install("vandor/redis-cache", InstallOptions(registry=REGISTRY_URL, dry_run=True))
        assert fake_registry.urls().count(REGISTRY_URL) == 1

    @pytest.mark.unit
    def test_unknown_in_alternate_registry(self, fake_registry: FakeRegistry, installer, go_project):
        fake_registry.add_yaml(self.ALT_REGISTRY, registry_index())
        with pytest.raises(PackageNotFoundError):
            installer.install("vandor/redis-cache", InstallOptions(registry=self.ALT_REGISTRY))
        assert not _default_dest(go_project).exists()


# ---------------------------------------------------------------------------
# Overwrite guard & dry run
# ---------------------------------------------------------------------------


class TestOverwriteGuard:
    @pytest.mark.unit
    def test_existing_destination_refused(self, installer, fake_registry: FakeRegistry, go_project):
        dest = _default_dest(go_project)
        dest.mkdir(parents=True)
        (dest / "service.go").write_text("// mine\n")

        with pytest.raises(PackageExistsError, match="use --force to overwrite"):
            installer.install("vandor/redis-cache")

        assert (dest / "service.go").read_text() == "// mine\n"
        assert sorted(p.name for p in dest.iterdir()) == ["service.go"]
        assert _file_requests(fake_registry) == []

    @pytest.mark.unit
    def test_force_overwrites(self, installer, go_project):
        dest = _default_dest(go_project)
        dest.mkdir(parents=True)
        (dest / "service.go").write_text("// mine\n")

        installer.install("vandor/redis-cache", InstallOptions(force=True))

        assert (dest / "service.go").read_text().startswith("package rediscache")
        assert (dest / "meta.yaml").is_file()

    @pytest.mark.unit
    def test_second_install_refused(self, installer):
        installer.install("vandor/redis-cache")
        with pytest.raises(PackageExistsError):
            installer.install("vandor/redis-cache")


class TestDryRun:
    @pytest.mark.unit
    def test_creates_nothing(self, installer: Installer, go_project: Path, record_console):
        before = sorted(p.relative_to(go_project) for p in go_project.rglob("*"))

        result = installer.install("vandor/redis-cache", InstallOptions(dry_run=True))

        after = sorted(p.relative_to(go_project) for p in go_project.rglob("*"))
        assert after == before
        assert result.dry_run is True
        dest = _default_dest(go_project)
        assert result.files == [dest / "service.go", dest / "README.md", dest / "config" / "config.go"]
        assert console_text(record_console) == ""

    @pytest.mark.unit
    def test_does_not_download_files(self, installer, fake_registry: FakeRegistry):
        installer.install("vandor/redis-cache", InstallOptions(dry_run=True))
        assert not any(url.startswith(REPO_BASE + "/packages/") for url in fake_registry.urls())

    @pytest.mark.unit
    def test_guard_applies_to_dry_run(self, installer, go_project):
        _default_dest(go_project).mkdir(parents=True)
        with pytest.raises(PackageExistsError):
            installer.install("vandor/redis-cache", InstallOptions(dry_run=True))


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestInstallFailures:
    @pytest.mark.unit
    def test_unknown_package(self, installer, go_project):
        with pytest.raises(PackageNotFoundError):
            installer.install("vandor/missing")
        assert not (go_project / "internal").exists()

    @pytest.mark.unit
    def test_no_template_files(self, installer):
        with pytest.raises(NoTemplateFilesError):
            installer.install("vandor/http-client")

    @pytest.mark.unit
    def test_render_failure_keeps_earlier_files(self, fake_registry: FakeRegistry, installer, go_project):
        fake_registry.add_text(
            f"{REPO_BASE}/packages/redis-cache/config/config.go.gotmpl", "{{ undefined_name }}"
        )
        with pytest.raises(TemplateRenderError, match="config/config.go.gotmpl"):
            installer.install("vandor/redis-cache")

        dest = _default_dest(go_project)
        assert (dest / "service.go").is_file()
        assert (dest / "README.md").is_file()
        assert not (dest / "config" / "config.go").exists()
        assert not (dest / "meta.yaml").exists()

    @pytest.mark.unit
    def test_fetch_failure(self, fake_registry: FakeRegistry, installer, go_project):
        fake_registry.add_text(f"{REPO_BASE}/packages/redis-cache/README.md.tmpl", "", status=500)
        with pytest.raises(RegistryStatusError):
            installer.install("vandor/redis-cache")
        assert not (_default_dest(go_project) / "meta.yaml").exists()

    @pytest.mark.unit
    def test_module_detection_failure(self, registry_client, tmp_path: Path, record_console):
        project = tmp_path / "no-module"
        project.mkdir()
        (project / "vandor-config.yaml").write_text("project:\n  name: x\n", encoding="utf-8")
        installer = Installer(registry_client, project_root=project, console=record_console)

        with pytest.raises(ModuleDetectionError):
            installer.install("vandor/redis-cache")
        assert not (project / "internal").exists()

    @pytest.mark.unit
    def test_module_detector_injected(self, registry_client, go_project, record_console):
        installer = Installer(
            registry_client,
            project_root=go_project,
            console=record_console,
            module_detector=lambda root: "example.com/injected",
        )
        installer.install("vandor/redis-cache")
        text = (_default_dest(go_project) / "service.go").read_text()
        assert "for example.com/injected" in text


# ---------------------------------------------------------------------------
# Cancellation & progress
# ---------------------------------------------------------------------------


class TestCancellation:
    @pytest.mark.unit
    def test_cancelled_before_start(self, installer, fake_registry: FakeRegistry):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(InstallCancelledError):
            installer.install("vandor/redis-cache", cancel=cancel)
        assert fake_registry.requests == []

    @pytest.mark.unit
    def test_cancelled_between_files(self, registry_client, go_project, record_console):
        cancel = threading.Event()

        def on_progress(event):
            if event.step == InstallStep.INSTALL and event.processed == 1:
                cancel.set()

        installer = Installer(
            registry_client,
            project_root=go_project,
            console=record_console,
            on_progress=on_progress,
        )
        with pytest.raises(InstallCancelledError):
            installer.install("vandor/redis-cache", cancel=cancel)

        dest = _default_dest(go_project)
        assert (dest / "service.go").is_file()
        assert not (dest / "README.md").exists()
        assert not (dest / "meta.yaml").exists()


class TestProgressEvents:
    @pytest.mark.unit
    def test_event_sequence(self, registry_client, go_project, record_console):
        events = []
        installer = Installer(
            registry_client,
            project_root=go_project,
            console=record_console,
            on_progress=events.append,
        )
        installer.install("vandor/redis-cache")

        steps = [e.step for e in events]
        assert steps[:2] == [InstallStep.DISCOVERY, InstallStep.DISCOVERY]
        assert steps[2:11] == [InstallStep.DOWNLOAD, InstallStep.RENDER, InstallStep.INSTALL] * 3
        assert steps[11:] == [InstallStep.INSTALL]
        assert events[1].total_files == 3
        assert events[-1].progress == 1.0
        assert events[-1].processed == 3
        assert all(e.error is None for e in events)

    @pytest.mark.unit
    def test_error_event(self, fake_registry: FakeRegistry, registry_client, go_project, record_console):
        fake_registry.add_text(f"{REPO_BASE}/packages/redis-cache/service.go.tmpl", "{{ nope }}")
        events = []
        installer = Installer(
            registry_client,
            project_root=go_project,
            console=record_console,
            on_progress=events.append,
        )
        with pytest.raises(TemplateRenderError):
            installer.install("vandor/redis-cache")
        assert events[-1].error is not None
        assert "service.go.tmpl" in events[-1].error


# ---------------------------------------------------------------------------
# Usage receipt
# ---------------------------------------------------------------------------


class TestUsageReceipt:
    @pytest.mark.unit
    def test_fx_module(self, installer, record_console):
        installer.install("vandor/redis-cache")
        text = console_text(record_console)
        assert "Package vandor/redis-cache installed successfully!" in text
        assert 'import rediscache "github.com/acme/app/internal/vpkg/vandor/redis-cache"' in text
        assert "rediscache.Module," in text
        assert "go get github.com/redis/go-redis/v9" in text
        assert "See README in internal/vpkg/vandor/redis-cache" in text
        assert "vandor vpkg exec" not in text

    @pytest.mark.unit
    def test_cli_command(self, installer, record_console):
        installer.install("vandor/hello-cli")
        text = console_text(record_console)
        assert "vandor vpkg exec vandor/hello-cli [args]" in text
        assert 'import hellocli "github.com/acme/app/internal/vpkg/vandor/hello-cli"' in text
        assert "hellocli.Command()" in text
        assert "See README in internal/vpkg/vandor/hello-cli" in text
        assert "fx.New" not in text


# ---------------------------------------------------------------------------
# Installed packages
# ---------------------------------------------------------------------------


class TestInstalledPackages:
    @pytest.mark.unit
    def test_install_list_remove(self, installer, go_project):
        installer.install("vandor/redis-cache")
        installer.install("vandor/hello-cli")

        installed = installer.list_installed()
        assert [(p.name, p.type) for p in installed] == [
            ("vandor/hello-cli", PackageType.CLI_COMMAND),
            ("vandor/redis-cache", PackageType.FX_MODULE),
        ]

        removed = installer.remove("vandor/redis-cache")
        assert removed == _default_dest(go_project)
        assert [p.name for p in installer.list_installed()] == ["vandor/hello-cli"]

    @pytest.mark.unit
    def test_reinstall_after_backup(self, installer, go_project):
        installer.install("vandor/redis-cache")
        backup = installer.remove("vandor/redis-cache", backup=True)
        installer.install("vandor/redis-cache")

        assert (backup / "service.go").is_file()
        assert (_default_dest(go_project) / "service.go").is_file()
        assert [p.path for p in installer.list_installed()] == [str(_default_dest(go_project))]
