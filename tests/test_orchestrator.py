"""
End-to-end tests for ModificationOrchestrator with a scripted oracle.
"""

import json

import pytest

from patchwright.exceptions import OracleError
from patchwright.oracle import NullOracle
from patchwright.orchestrator import ModificationOrchestrator, SessionLifecycle
from patchwright.schemas import ModificationStrategy


SCOPE = "Classify how this change request should be applied."
SELECT = "Does this file need to change"
SELECT_HEADER = "File: src/components/Header.tsx\nRequest:"
MODIFY = "Modify only the elements below."
FILE_SELECTION = "Which files must be rewritten"
BATCH = "Files to rewrite:"
SINGLE_FILE = "Rewrite the whole file"
COMPONENT_TYPE = "Should this be a reusable component or a routed page?"
GENERATE = "Create a React"
ROUTE = "Make the new page reachable"

LOG_IN_BUTTON = '      <button className="btn">Log In</button>'


def scope_reply(strategy, confidence=90):
    return json.dumps({"scope": strategy, "confidence": confidence, "reasoning": f"{strategy.lower()} request"})


def targeted_rules(select_reply="RELEVANT: YES\nSCORE: 95\nREASON: the sign in button\nTARGETS: node_3"):
    return [
        (SCOPE, scope_reply("TARGETED_NODES")),
        (SELECT_HEADER, select_reply),
        (SELECT, "RELEVANT: NO\nSCORE: 5\nREASON: unrelated\nTARGETS:"),
        (MODIFY, "```json\n" + json.dumps({"node_3": {"modifiedCode": LOG_IN_BUTTON, "requiredImports": []}}) + "\n```"),
    ]


@pytest.fixture
def orchestrator(scripted_oracle, session_cache):
    return ModificationOrchestrator(scripted_oracle, session_cache)


def snapshot(project):
    return {p.relative_to(project).as_posix(): p.read_text() for p in project.rglob("*") if p.is_file()}


class TestTargetedRequests:
    """Sign In -> Log In through the targeted branch."""

    def test_sign_in_becomes_log_in(self, orchestrator, scripted_oracle, react_project, session_cache):
        scripted_oracle.rules = targeted_rules()
        before = snapshot(react_project)

        result = orchestrator.process("change the Sign In button to Log In", "s1", str(react_project))

        assert result.success
        assert result.strategy_used == ModificationStrategy.TARGETED_NODES
        assert result.files_changed == ["src/components/Header.tsx"]
        assert result.final_state == "Reported(success)"
        assert result.states_visited == [
            "Idle", "ScopeClassified", "TargetedEditing", "WrittenToDisk", "CacheUpdated", "Reported",
        ]

        after = snapshot(react_project)
        header = "src/components/Header.tsx"
        assert after[header] == before[header].replace("Sign In", "Log In")
        assert {k: v for k, v in after.items() if k != header} == {k: v for k, v in before.items() if k != header}

        skipped = {o.path for o in result.file_outcomes if o.status == "skipped"}
        assert skipped == {"src/App.tsx", "src/pages/Home.tsx"}

        assert len(result.change_log) == 1
        change = result.change_log[0]
        assert change.kind == "modified"
        assert change.details["nodes"] == ["node_3"]
        assert '-      <button className="btn">Sign In</button>' in change.details["diff"]
        assert [c.file for c in session_cache.get_changes("s1")] == [header]

    def test_session_state_after_request(self, orchestrator, scripted_oracle, react_project, session_cache):
        scripted_oracle.rules = targeted_rules()
        orchestrator.process("change the Sign In button to Log In", "s1", str(react_project))

        assert session_cache.get_state("s1", "last_request")["strategy"] == "TARGETED_NODES"
        files = session_cache.get_project_files("s1")
        assert "Log In" in files["src/components/Header.tsx"].content
        context = session_cache.get_context("s1")
        assert context.working_directory == str(react_project.resolve())
        assert "src/components/Header.tsx" in context.last_project_summary

    def test_follow_up_reuses_session_context(self, orchestrator, scripted_oracle, react_project):
        """A second request needs no working directory and sees the earlier change."""
        scripted_oracle.rules = targeted_rules()
        orchestrator.process("change the Sign In button to Log In", "s1", str(react_project))

        scripted_oracle.calls.clear()
        scripted_oracle.rules = [(SCOPE, scope_reply("TARGETED_NODES")), (SELECT, "RELEVANT: NO\nSCORE: 0\nTARGETS:")]
        result = orchestrator.process("make the title bold", "s1")

        assert result.error is None
        scope_prompt = scripted_oracle.prompts_containing(SCOPE)[0]
        assert "modified src/components/Header.tsx" in scope_prompt

    def test_unparsable_selection_changes_nothing(self, orchestrator, scripted_oracle, react_project):
        scripted_oracle.rules = targeted_rules(select_reply="I am not sure what you mean")
        before = snapshot(react_project)

        result = orchestrator.process("change the Sign In button to Log In", "s1", str(react_project))

        assert not result.success
        assert result.error is None
        assert result.files_changed == []
        assert result.change_log == []
        assert all(o.status == "skipped" for o in result.file_outcomes)
        assert result.final_state == "Reported(failed)"
        assert snapshot(react_project) == before
        assert scripted_oracle.prompts_containing(MODIFY) == []

    def test_low_confidence_selection_is_skipped(self, orchestrator, scripted_oracle, react_project):
        scripted_oracle.rules = targeted_rules(select_reply="RELEVANT: YES\nSCORE: 50\nREASON: maybe\nTARGETS: node_3")
        result = orchestrator.process("change the Sign In button to Log In", "s1", str(react_project))

        header = [o for o in result.file_outcomes if o.path == "src/components/Header.tsx"][0]
        assert header.status == "skipped"
        assert "below 70" in header.detail
        assert result.files_changed == []

    def test_cache_outage_does_not_change_outcome(self, orchestrator, scripted_oracle, react_project,
                                                  memory_backend, durable_store):
        memory_backend.connected = False
        scripted_oracle.rules = targeted_rules()

        result = orchestrator.process("change the Sign In button to Log In", "s1", str(react_project))

        assert result.success
        assert "Log In" in (react_project / "src" / "components" / "Header.tsx").read_text()
        assert len(durable_store.load_changes("s1")) == 1
        assert durable_store.load_context("s1") is not None

    def test_oracle_offline(self, session_cache, react_project):
        """With no oracle at all the request fails gracefully and touches nothing."""
        before = snapshot(react_project)
        result = ModificationOrchestrator(NullOracle(), session_cache).process(
            "change button text to Log In", "s1", str(react_project)
        )
        assert not result.success
        assert result.error is None
        assert snapshot(react_project) == before


class TestFullFileRequests:

    def test_escaping_paths_are_never_written(self, orchestrator, scripted_oracle, react_project, temp_dir):
        """Oracle-supplied paths outside the project are dropped at every step."""
        new_app = "export default function App() {\n  return <div className=\"dark\" />;\n}\n"
        scripted_oracle.rules = [
            (SCOPE, scope_reply("FULL_FILE")),
            (FILE_SELECTION, '[{"filePath": "../../etc/passwd", "relevanceScore": 99}]'),
            (BATCH, "```tsx\n// FILE: ../../etc/passwd\nroot::0:0\n```\n```tsx\n// FILE: src/App.tsx\n" + new_app + "```"),
            (SINGLE_FILE, "No changes needed."),
        ]
        result = orchestrator.process("switch to a dark mode theme", "s1", str(react_project))

        assert result.success
        assert result.strategy_used == ModificationStrategy.FULL_FILE
        assert result.files_changed == ["src/App.tsx"]
        assert (react_project / "src" / "App.tsx").read_text() == new_app
        assert not (temp_dir / "etc").exists()
        assert result.change_log[0].description == "File regenerated"

    def test_single_target_uses_single_call(self, orchestrator, scripted_oracle, react_project):
        scripted_oracle.rules = [
            (SCOPE, scope_reply("FULL_FILE")),
            (FILE_SELECTION, '[{"filePath": "src/pages/Home.tsx", "relevanceScore": 90}]'),
            (SINGLE_FILE, "```tsx\nexport default function Home() {\n  return <main>Hi</main>;\n}\n```"),
        ]
        result = orchestrator.process("simplify the home page markup", "s1", str(react_project))

        assert result.files_changed == ["src/pages/Home.tsx"]
        assert scripted_oracle.prompts_containing(BATCH) == []
        assert "<main>Hi</main>" in (react_project / "src" / "pages" / "Home.tsx").read_text()


class TestComponentRequests:

    def test_about_page(self, orchestrator, scripted_oracle, react_project):
        scripted_oracle.rules = [
            (SCOPE, scope_reply("COMPONENT_ADDITION")),
            (COMPONENT_TYPE, "TYPE: page\nNAME: About\nCONFIDENCE: 90\nREASONING: page wording"),
            (GENERATE, "```tsx\nexport default function About() {\n  return <main>About</main>;\n}\n```"),
            (ROUTE, OracleError("timeout", backend="scripted")),
        ]
        result = orchestrator.process("add an About page", "s1", str(react_project))

        assert result.success
        assert result.strategy_used == ModificationStrategy.COMPONENT_ADDITION
        assert result.files_changed == ["src/pages/About.tsx", "src/App.tsx"]
        assert [c.kind for c in result.change_log] == ["created", "updated"]
        assert "ComponentSynthesizing" in result.states_visited

        assert (react_project / "src" / "pages" / "About.tsx").exists()
        app = (react_project / "src" / "App.tsx").read_text()
        assert "import About from './pages/About';" in app
        assert '<Route path="/about" element={<About />} />' in app

    def test_about_page_without_oracle(self, session_cache, react_project):
        """Component addition still completes when every oracle call fails."""
        result = ModificationOrchestrator(NullOracle(), session_cache).process(
            "add an About page", "s1", str(react_project)
        )

        assert result.success
        assert result.strategy_used == ModificationStrategy.COMPONENT_ADDITION
        assert result.files_changed == ["src/pages/About.tsx", "src/App.tsx"]
        assert [c.kind for c in result.change_log] == ["created", "updated"]
        assert "export default function About()" in (react_project / "src" / "pages" / "About.tsx").read_text()
        app = (react_project / "src" / "App.tsx").read_text()
        assert "import About from './pages/About';" in app
        assert '<Route path="/about" element={<About />} />' in app

    def test_about_page_relaxed_level(self, scripted_oracle, session_cache, react_project):
        """At the relaxed level the page is still created where App.tsx imports it from."""
        scripted_oracle.rules = [
            (SCOPE, scope_reply("COMPONENT_ADDITION")),
            (COMPONENT_TYPE, "TYPE: page\nNAME: About\nCONFIDENCE: 90"),
            (GENERATE, "```tsx\nexport default function About() {\n  return <main>About</main>;\n}\n```"),
            (ROUTE, OracleError("timeout", backend="scripted")),
        ]
        orchestrator = ModificationOrchestrator(scripted_oracle, session_cache, security_level="relaxed")
        result = orchestrator.process("add an About page", "s1", str(react_project))

        assert result.success
        assert result.files_changed == ["src/pages/About.tsx", "src/App.tsx"]
        assert (react_project / "src" / "pages" / "About.tsx").exists()
        assert not (react_project / "pages").exists()
        assert "import About from './pages/About';" in (react_project / "src" / "App.tsx").read_text()

    def test_routing_failure_is_partial(self, orchestrator, scripted_oracle, react_project):
        (react_project / "src" / "App.tsx").write_text("export default function App() {\n  return <div />;\n}\n")
        scripted_oracle.rules = [
            (SCOPE, scope_reply("COMPONENT_ADDITION")),
            (COMPONENT_TYPE, "TYPE: page\nNAME: About\nCONFIDENCE: 90"),
        ]
        result = orchestrator.process("add an About page", "s1", str(react_project))

        assert result.success
        assert result.files_changed == ["src/pages/About.tsx"]
        failed = [o for o in result.file_outcomes if o.status == "failed"]
        assert [o.path for o in failed] == ["src/App.tsx"]
        assert result.change_log[-1].kind == "updated"
        assert not result.change_log[-1].success


class TestSessionSetup:

    def test_missing_working_directory(self, orchestrator, temp_dir):
        result = orchestrator.process("anything", "s1", str(temp_dir / "missing"))

        assert not result.success
        assert result.strategy_used is None
        assert result.error
        assert result.states_visited == ["Idle", "Reported"]
        assert result.final_state == "Reported(failed)"

    def test_unknown_session_without_directory(self, orchestrator):
        result = orchestrator.process("anything", "never-seen")
        assert not result.success
        assert "no working directory" in result.error

    def test_project_without_src(self, orchestrator, temp_dir):
        (temp_dir / "bare").mkdir()
        result = orchestrator.process("anything", "s1", str(temp_dir / "bare"))
        assert not result.success
        assert "does not exist" in result.error

    def test_lifecycle_tracks_session(self, scripted_oracle, session_cache, react_project, temp_dir):
        lifecycle = SessionLifecycle(session_cache, temp_dir / "builds", timeout_seconds=60)
        orchestrator = ModificationOrchestrator(scripted_oracle, session_cache, lifecycle=lifecycle)
        scripted_oracle.rules = targeted_rules()
        try:
            orchestrator.process("change the Sign In button to Log In", "s1", str(react_project))
            sessions = lifecycle.active_sessions()
            assert [s.session_id for s in sessions] == ["s1"]
            assert sessions[0].build_id == session_cache.get_context("s1").build_id
        finally:
            lifecycle.shutdown()
