"""
Tests for bounty repository discovery, result snapshots, settings and the
end-to-end pipeline.

No network access: scrapers get a fake aiohttp-like session.
"""

import asyncio
import json
from pathlib import Path

import aiohttp
import pytest

from extensions.bounty import (
    BountyDiscovery,
    BountyPipeline,
    CloneError,
    RepositoryReference,
    RepositoryWorkspace,
    ResultStore,
    normalize_repo_url,
    parse_github_url,
    reference_from_link,
    result_filename,
)
from extensions.bounty.scraper import (
    Code4renaScraper,
    HatsScraper,
    ImmunefiScraper,
    SherlockScraper,
    extract_markdown_links,
)
from extensions.artifacts import RepositoryBuildResult
from extensions.settings import Settings


class FakeResponse:
    def __init__(self, status: int = 200, body=""):
        self.status = status
        self.body = body if isinstance(body, str) else json.dumps(body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return False

    async def text(self):
        return self.body

    async def json(self, content_type=None):
        return json.loads(self.body)


class FakeSession:
    """Maps URLs to responses; unknown URLs are 404."""

    def __init__(self, routes=None, error=None):
        self.routes = routes or {}
        self.error = error
        self.requested: list[str] = []

    def _respond(self, url):
        self.requested.append(url)
        if self.error:
            raise self.error
        return self.routes.get(url, FakeResponse(404))

    def get(self, url, **kwargs):
        return self._respond(url)

    def post(self, url, **kwargs):
        return self._respond(url)


async def run_scraper(scraper_class, session):
    async with scraper_class(session) as scraper:
        return await scraper.discover()


class TestGithubLinks:
    """URL normalization and commit parsing."""

    def test_normalize(self):
        assert normalize_repo_url("https://github.com/org/repo/blob/main/src/A.sol") == "https://github.com/org/repo"
        assert normalize_repo_url("https://github.com/org/repo.git") == "https://github.com/org/repo"
        assert normalize_repo_url("https://github.com/org") is None
        assert normalize_repo_url("not a url") is None

    def test_parse_commit_url(self):
        parsed = parse_github_url("https://github.com/sherlock-audit/2024-03-vault/tree/0a1b2c3d4e5f")
        assert parsed == ("https://github.com/sherlock-audit/2024-03-vault", "2024-03-vault", "0a1b2c3d4e5f")

    def test_parse_branch_url_is_not_pinned(self):
        assert parse_github_url("https://github.com/org/repo/tree/main") is None

    def test_reference_from_link(self):
        ref = reference_from_link("code4rena", "https://github.com/code-423n4/2024-01-foo")

        assert ref.url == "https://github.com/code-423n4/2024-01-foo"
        assert ref.name == "repos/2024-01-foo"
        assert ref.commit is None
        assert ref.slug == "repos_2024-01-foo"

    def test_reference_requires_commit_when_pinned(self):
        assert reference_from_link("sherlock", "https://github.com/org/repo", pin_commit=True) is None

    def test_reference_dict_round_trip(self):
        ref = RepositoryReference("hats", "https://github.com/a/b", "repos/b", "abcdef1")
        assert RepositoryReference.from_dict(ref.to_dict()) == ref


class TestScraperParsing:
    """Per-platform page parsing."""

    def test_code4rena_page(self):
        html = """
        <a href="https://github.com/code-423n4">org</a>
        <a href="https://github.com/code-423n4/2024-01-foo">repo</a>
        <a href="https://github.com/code-423n4/2024-01-foo">again</a>
        <a href="https://twitter.com/code4rena">twitter</a>
        """
        refs = Code4renaScraper().references_from_page(html)

        assert [r.name for r in refs] == ["repos/2024-01-foo"]
        assert refs[0].parser == "code4rena"

    def test_sherlock_running_contests(self):
        contests = [
            {"id": 1, "status": "RUNNING"},
            {"id": 2, "status": "FINISHED"},
            {"id": 3, "status": "RUNNING"},
        ]
        assert SherlockScraper.running_contest_ids(contests) == [1, 3]
        assert SherlockScraper.running_contest_ids({"error": "x"}) == []

    def test_sherlock_description_keeps_pinned_links_only(self):
        description = (
            "# Scope\n"
            "[repo](https://github.com/sherlock-audit/2024-03-vault/tree/0a1b2c3d4e5f).\n"
            "See https://github.com/sherlock-audit/docs for more"
        )
        refs = SherlockScraper().references_from_description(description)

        assert len(refs) == 1
        assert refs[0].commit == "0a1b2c3d4e5f"
        assert refs[0].name == "repos/2024-03-vault"

    def test_markdown_links_strip_punctuation(self):
        assert extract_markdown_links("at https://github.com/a/b.") == ["https://github.com/a/b"]

    def test_immunefi_bounty_paths(self):
        next_data = json.dumps({"props": {"pageProps": {"bounties": [{"id": "alpha"}]}}})
        html = f"""
        <script id="__NEXT_DATA__" type="application/json">{next_data}</script>
        <a href="/bounty/beta/">beta</a>
        <a href="https://immunefi.com/bounty/alpha/">alpha</a>
        """
        assert ImmunefiScraper().bounty_paths(html) == ["/bounty/alpha/", "/bounty/beta/"]

    def test_immunefi_bounty_links(self):
        html = """
        <a href="https://github.com/immunefi-team/forge-poc-templates">template</a>
        <a href="https://github.com/protocol/core/blob/main/contracts/Pool.sol">Pool</a>
        """
        refs = ImmunefiScraper().references_from_bounty(html)

        assert [r.url for r in refs] == ["https://github.com/protocol/core"]

    def test_hats_description_hashes(self):
        response = {"data": {"masters": [{"vaults": [
            {"id": "0x1", "descriptionHash": "QmOne"},
            {"id": "0x2", "descriptionHash": None},
        ]}]}}
        assert HatsScraper.description_hashes(response) == ["QmOne"]
        assert HatsScraper.description_hashes(None) == []

    @pytest.mark.parametrize("next_data", ['{"props": null}', '{"props": {"pageProps": []}}', '[1, 2]'])
    def test_immunefi_malformed_next_data(self, next_data):
        html = f'<script id="__NEXT_DATA__">{next_data}</script><a href="/bounty/beta/">beta</a>'
        assert ImmunefiScraper().bounty_paths(html) == ["/bounty/beta/"]

    def test_hats_malformed_documents(self):
        assert HatsScraper.covered_links({"severities": ["low", None, {"contracts-covered": "x"}]}) == []
        assert HatsScraper.description_hashes({"data": {"masters": ["m", {"vaults": [3, None]}]}}) == []
        assert HatsScraper.description_hashes({"data": None}) == []

    def test_hats_covered_links(self):
        description = {"severities": [
            {"contracts-covered": [{"Vault": "https://github.com/hats/vault/blob/main/V.sol"}, "junk"]},
            {"contracts-covered": [{"Site": "https://hats.finance"}]},
        ]}
        assert HatsScraper.covered_links(description) == ["https://github.com/hats/vault/blob/main/V.sol"]


class TestScraperDiscovery:
    """discover() against a fake session."""

    def test_sherlock_discover(self):
        session = FakeSession({
            SherlockScraper.API_URL: FakeResponse(body=[
                {"id": 7, "status": "RUNNING"},
                {"id": 8, "status": "JUDGING"},
            ]),
            f"{SherlockScraper.API_URL}/7": FakeResponse(body={
                "description": "https://github.com/sherlock-audit/2024-05-lend/tree/1234567abc",
            }),
        })

        refs = asyncio.run(run_scraper(SherlockScraper, session))

        assert [(r.url, r.commit) for r in refs] == [
            ("https://github.com/sherlock-audit/2024-05-lend", "1234567abc"),
        ]
        assert f"{SherlockScraper.API_URL}/8" not in session.requested

    def test_hats_discover(self):
        vaults = {"data": {"masters": [{"vaults": [{"id": "0x1", "descriptionHash": "QmVault"}]}]}}
        routes = {url: FakeResponse(body=vaults) for url in HatsScraper.SUBGRAPH_URLS}
        routes[f"{HatsScraper.IPFS_URL}/QmVault"] = FakeResponse(body={"severities": [
            {"contracts-covered": [{"Vault": "https://github.com/hats/vault/blob/main/V.sol"}]},
        ]})

        refs = asyncio.run(run_scraper(HatsScraper, FakeSession(routes)))

        assert [r.name for r in refs] == ["repos/vault"]

    def test_http_error_yields_nothing(self):
        session = FakeSession({Code4renaScraper.URL: FakeResponse(status=503)})
        assert asyncio.run(run_scraper(Code4renaScraper, session)) == []

    def test_client_error_yields_nothing(self):
        session = FakeSession(error=aiohttp.ClientConnectionError("refused"))
        assert asyncio.run(run_scraper(Code4renaScraper, session)) == []

    def test_discover_all_selected_platforms(self):
        html = '<a href="https://github.com/code-423n4/2024-02-bar">bar</a>'
        discovery = BountyDiscovery()
        discovery._session = FakeSession({Code4renaScraper.URL: FakeResponse(body=html)})

        results = asyncio.run(discovery.discover_all(["code4rena"]))

        assert list(results) == ["code4rena"]
        assert [r.name for r in results["code4rena"]] == ["repos/2024-02-bar"]

    def test_malformed_vault_description_yields_nothing(self):
        vaults = {"data": {"masters": [{"vaults": [{"id": "0x1", "descriptionHash": "QmBad"}]}]}}
        routes = {url: FakeResponse(body=vaults) for url in HatsScraper.SUBGRAPH_URLS}
        routes[f"{HatsScraper.IPFS_URL}/QmBad"] = FakeResponse(body={"severities": ["low"]})
        discovery = BountyDiscovery()
        discovery._session = FakeSession(routes)

        assert asyncio.run(discovery.discover_all(["hats"])) == {"hats": []}

    def test_scraper_error_isolated_to_platform(self, monkeypatch):
        async def broken(self):
            raise KeyError("unexpected listing shape")

        monkeypatch.setattr(SherlockScraper, "discover", broken)
        html = '<a href="https://github.com/code-423n4/2024-02-bar">bar</a>'
        discovery = BountyDiscovery()
        discovery._session = FakeSession({Code4renaScraper.URL: FakeResponse(body=html)})

        results = asyncio.run(discovery.discover_all(["sherlock", "code4rena"]))

        assert results["sherlock"] == []
        assert [r.name for r in results["code4rena"]] == ["repos/2024-02-bar"]

    def test_sherlock_non_string_description(self):
        session = FakeSession({
            SherlockScraper.API_URL: FakeResponse(body=[{"id": 7, "status": "RUNNING"}]),
            f"{SherlockScraper.API_URL}/7": FakeResponse(body={"description": None}),
        })
        assert asyncio.run(run_scraper(SherlockScraper, session)) == []

    def test_unknown_platform(self):
        with pytest.raises(ValueError):
            asyncio.run(BountyDiscovery().discover_platform("bugcrowd"))


class TestResultStore:
    """Snapshot file naming and persistence."""

    def test_filename_flattens_path(self):
        assert result_filename("code4rena", "repos/foo") == "code4rena_repos_foo_contracts.json"

    def test_save_and_load(self, tmp_path):
        store = ResultStore(tmp_path / "results")
        result = RepositoryBuildResult(repository="repos/foo", toolchain="foundry")

        path = store.save("sherlock", result)

        assert path.name == "sherlock_repos_foo_contracts.json"
        assert json.loads(path.read_text())["repository"] == "repos/foo"
        assert store.load("sherlock", "repos/foo").toolchain == "foundry"
        assert store.list_results() == [path]

    def test_load_missing(self, tmp_path):
        assert ResultStore(tmp_path).load("hats", "repos/none") is None


class TestSettings:
    """Defaults < YAML < .env < environment < overrides."""

    @pytest.fixture(autouse=True)
    def isolated(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        for name in ("CONCURRENCY", "BUILD_TIMEOUT", "HTTP_TIMEOUT", "LOG_LEVEL", "RESULTS_DIR"):
            monkeypatch.delenv(f"BOUNTYFORGE_{name}", raising=False)

    def test_defaults(self):
        settings = Settings.load()

        assert settings.concurrency == 4
        assert settings.results_dir == Path("results")
        assert settings.log_level == "INFO"

    def test_default_config_file_in_working_directory(self, tmp_path):
        (tmp_path / "bountyforge.yaml").write_text("concurrency: 7\n")

        assert Settings.load().concurrency == 7

    def test_precedence(self, tmp_path, monkeypatch):
        config = tmp_path / "custom.yaml"
        config.write_text("concurrency: 2\nbuild_timeout: 60\nresults_dir: out/results\nlog_level: debug\n")
        monkeypatch.setenv("BOUNTYFORGE_BUILD_TIMEOUT", "120")
        monkeypatch.setenv("BOUNTYFORGE_HTTP_TIMEOUT", "5")

        settings = Settings.load(config, http_timeout=10, concurrency=None)

        assert settings.concurrency == 2
        assert settings.build_timeout == 120
        assert settings.http_timeout == 10
        assert settings.results_dir == Path("out/results")
        assert settings.log_level == "DEBUG"

    def test_dotenv_below_environment(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text("BOUNTYFORGE_CONCURRENCY=3\nBOUNTYFORGE_BUILD_TIMEOUT=30\n")
        monkeypatch.setenv("BOUNTYFORGE_BUILD_TIMEOUT", "45")

        settings = Settings.load()

        assert settings.concurrency == 3
        assert settings.build_timeout == 45

    def test_missing_config_uses_defaults(self, tmp_path):
        settings = Settings.load(tmp_path / "missing.yaml")

        assert settings.build_timeout == 900

    def test_bad_integer(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BOUNTYFORGE_CONCURRENCY", "many")

        with pytest.raises(ValueError):
            Settings.load(tmp_path / "missing.yaml")

    @pytest.mark.parametrize("source", ["yaml", "env", "override"])
    def test_invalid_log_level(self, tmp_path, monkeypatch, source):
        config = tmp_path / "bountyforge.yaml"
        overrides = {}
        if source == "yaml":
            config.write_text("log_level: verbose\n")
        elif source == "env":
            monkeypatch.setenv("BOUNTYFORGE_LOG_LEVEL", "verbose")
        else:
            overrides["log_level"] = "verbose"

        with pytest.raises(ValueError, match="log_level"):
            Settings.load(config, **overrides)

    def test_unknown_yaml_key_ignored(self, tmp_path, caplog):
        config = tmp_path / "bountyforge.yaml"
        config.write_text("concurrency: 5\nflavour: vanilla\n")

        with caplog.at_level("WARNING"):
            settings = Settings.load(config)

        assert settings.concurrency == 5
        assert not hasattr(settings, "flavour")
        assert "flavour" in caplog.text

    def test_non_mapping_config(self, tmp_path):
        config = tmp_path / "bountyforge.yaml"
        config.write_text("- a\n- b\n")

        with pytest.raises(ValueError):
            Settings.load(config)


class FixtureWorkspace(RepositoryWorkspace):
    """Creates checkouts from fixtures instead of running git."""

    def __init__(self, base_dir: Path, layouts: dict[str, str]):
        super().__init__(base_dir=base_dir, quarantine_dir=base_dir / "quarantine")
        self.layouts = layouts

    def clone(self, ref: RepositoryReference) -> Path:
        layout = self.layouts.get(ref.name)
        if layout is None:
            raise CloneError(f"repository not found: {ref.url}")

        target = self.path_for(ref)
        target.mkdir(parents=True)
        if layout == "built":
            (target / "foundry.toml").write_text("")
            artifact = target / "out" / "Vault.sol" / "Vault.json"
            artifact.parent.mkdir(parents=True)
            artifact.write_text(json.dumps({"bytecode": {"object": "0x6080"}}))
        elif layout == "unbuilt":
            (target / "foundry.toml").write_text("")
        else:
            (target / "README.md").write_text("docs only")
        return target


class TestBountyPipeline:
    """Clone, select, extract and snapshot."""

    @pytest.fixture
    def pipeline(self, tmp_path):
        settings = Settings(repos_dir=tmp_path, results_dir=tmp_path / "results", concurrency=2)
        workspace = FixtureWorkspace(tmp_path, {
            "repos/foo": "built",
            "repos/broken": "unbuilt",
            "repos/docs": "docs",
        })
        return BountyPipeline(settings=settings, workspace=workspace, build=False)

    def test_run_reports_every_outcome(self, pipeline, tmp_path):
        refs = [
            RepositoryReference("code4rena", "https://github.com/org/foo", "repos/foo"),
            RepositoryReference("hats", "https://github.com/org/broken", "repos/broken"),
            RepositoryReference("immunefi", "https://github.com/org/docs", "repos/docs"),
            RepositoryReference("sherlock", "https://github.com/org/gone", "repos/gone"),
        ]

        reports = {r.reference.name: r for r in asyncio.run(pipeline.run(refs))}

        assert reports["repos/foo"].status == "built"
        assert reports["repos/foo"].contract_count == 1
        assert reports["repos/foo"].result_path == tmp_path / "results" / "code4rena_repos_foo_contracts.json"
        assert reports["repos/broken"].status == "build_failed"
        assert reports["repos/docs"].status == "unsupported"
        assert reports["repos/gone"].status == "clone_failed"
        assert "repository not found" in reports["repos/gone"].error

    def test_snapshot_contents(self, pipeline, tmp_path):
        ref = RepositoryReference("code4rena", "https://github.com/org/foo", "repos/foo")

        report = pipeline.process(ref)

        snapshot = json.loads(report.result_path.read_text())
        assert snapshot["repository"] == "repos/foo"
        assert snapshot["toolchain"] == "foundry"
        assert [c["name"] for c in snapshot["contracts"]] == ["Vault"]

    def test_failed_builds_quarantined_and_unsupported_removed(self, pipeline, tmp_path):
        pipeline.process(RepositoryReference("hats", "https://github.com/org/broken", "repos/broken"))
        pipeline.process(RepositoryReference("hats", "https://github.com/org/docs", "repos/docs"))

        assert not (tmp_path / "repos" / "broken").exists()
        assert (tmp_path / "quarantine" / "broken" / "foundry.toml").exists()
        assert not (tmp_path / "repos" / "docs").exists()
        assert not (tmp_path / "results").exists()

    def test_duplicate_checkouts_processed_once(self, pipeline):
        refs = [
            RepositoryReference("code4rena", "https://github.com/org/foo", "repos/foo"),
            RepositoryReference("hats", "https://github.com/other/foo", "repos/foo"),
        ]

        reports = asyncio.run(pipeline.run(refs))

        assert [r.reference.parser for r in reports] == ["code4rena"]
