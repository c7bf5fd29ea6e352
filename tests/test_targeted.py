"""
Tests for targeted node editing: NodeSelector and NodeMutator.
"""

import json

import pytest

from patchwright.exceptions import OracleError, StaleParseError
from patchwright.mutation import NodeMutator, NodeSelector
from patchwright.parser import ASTIndexer
from patchwright.schemas import NodeReplacement, NodeSelection


HEADER = """import React from 'react';

export default function Header() {
  return (
    <header className="header">
      <h1>My Site</h1>
      <button className="btn">Sign In</button>
    </header>
  );
}
"""


@pytest.fixture
def indexed():
    return ASTIndexer().parse_content("src/components/Header.tsx", HEADER)


def selection_for(indexed, ids, confidence=90):
    return NodeSelection(
        path=indexed.path,
        pass_id=indexed.pass_id,
        needs_change=True,
        selected_ids=list(ids),
        confidence=confidence,
        reasoning="test",
    )


class TestNodeSelector:
    """Test NodeSelector.select()."""

    def test_selects_known_nodes(self, indexed, scripted_oracle):
        scripted_oracle.replies = ["RELEVANT: YES\nSCORE: 92\nREASON: the sign in button\nTARGETS: node_3, node_99"]
        selection = NodeSelector(scripted_oracle).select(indexed, "change Sign In to Log In")

        assert selection.needs_change
        assert selection.selected_ids == ["node_3"]
        assert selection.confidence == 92
        assert selection.pass_id == indexed.pass_id
        prompt = scripted_oracle.calls[0][1]
        assert 'node_3: <button> "Sign In" [BUTTON] [SIGNIN]' in prompt

    def test_not_relevant(self, indexed, scripted_oracle):
        scripted_oracle.replies = ["RELEVANT: NO\nSCORE: 3\nREASON: unrelated\nTARGETS:"]
        selection = NodeSelector(scripted_oracle).select(indexed, "change the footer")
        assert not selection.needs_change
        assert selection.selected_ids == []
        assert selection.reasoning == "unrelated"

    def test_unparsable_reply(self, indexed, scripted_oracle):
        """An unparsable reply yields the conservative default."""
        scripted_oracle.replies = ["I am not sure what you mean"]
        selection = NodeSelector(scripted_oracle).select(indexed, "change Sign In to Log In")
        assert not selection.needs_change
        assert selection.confidence == 0

    def test_relevant_without_valid_ids(self, indexed, scripted_oracle):
        scripted_oracle.replies = ["RELEVANT: YES\nSCORE: 90\nREASON: x\nTARGETS: node_42"]
        selection = NodeSelector(scripted_oracle).select(indexed, "anything")
        assert not selection.needs_change
        assert selection.confidence == 0

    def test_oracle_failure(self, indexed, scripted_oracle):
        scripted_oracle.replies = [OracleError("timeout", backend="scripted")]
        selection = NodeSelector(scripted_oracle).select(indexed, "anything")
        assert not selection.needs_change
        assert "Oracle unavailable" in selection.reasoning

    def test_file_without_nodes_skips_oracle(self, scripted_oracle):
        empty = ASTIndexer().parse_content("src/utils/math.ts", "export const add = (a: number, b: number) => a + b;\n")
        selection = NodeSelector(scripted_oracle).select(empty, "anything")
        assert not selection.needs_change
        assert scripted_oracle.calls == []


class TestNodeMutatorGenerate:
    """Test NodeMutator.generate() reply handling."""

    def test_batched_reply(self, indexed, scripted_oracle):
        scripted_oracle.replies = ["```json\n" + json.dumps({
            "node_2": "      <h1>Welcome</h1>",
            "node_3": {"modifiedCode": '      <button className="btn">Log In</button>', "requiredImports": []},
        }) + "\n```"]
        replacements = NodeMutator(scripted_oracle).generate(indexed, selection_for(indexed, ["node_2", "node_3"]), "x")

        assert [r.node_id for r in replacements] == ["node_2", "node_3"]
        assert len(scripted_oracle.calls) == 1
        assert "Log In" in replacements[1].replacement_code

    def test_missing_entries_are_dropped(self, indexed, scripted_oracle):
        scripted_oracle.replies = ['{"node_3": ""}']
        assert NodeMutator(scripted_oracle).generate(indexed, selection_for(indexed, ["node_3"]), "x") == []

    def test_non_json_reply(self, indexed, scripted_oracle):
        scripted_oracle.replies = ["Sorry, cannot help"]
        assert NodeMutator(scripted_oracle).generate(indexed, selection_for(indexed, ["node_3"]), "x") == []

    def test_stale_selection(self, indexed, scripted_oracle):
        other = ASTIndexer().parse_content(indexed.path, HEADER)
        with pytest.raises(StaleParseError):
            NodeMutator(scripted_oracle).generate(indexed, selection_for(other, ["node_3"]), "x")


class TestNodeMutatorApply:
    """Test NodeMutator.apply() splicing."""

    def test_single_node(self, indexed, scripted_oracle):
        replacement = NodeReplacement(node_id="node_3", replacement_code='      <button className="btn">Log In</button>')
        result = NodeMutator(scripted_oracle).apply(indexed, selection_for(indexed, ["node_3"]), [replacement], HEADER)

        assert result == HEADER.replace("Sign In", "Log In")

    def test_multiple_nodes_with_line_count_changes(self, indexed, scripted_oracle):
        """Splicing bottom-up keeps earlier line numbers valid."""
        replacements = [
            NodeReplacement(node_id="node_2", replacement_code="      <h1>My Site</h1>\n      <p>Tagline</p>"),
            NodeReplacement(node_id="node_3", replacement_code='      <button className="btn">Log In</button>'),
        ]
        result = NodeMutator(scripted_oracle).apply(
            indexed, selection_for(indexed, ["node_2", "node_3"]), replacements, HEADER
        )
        lines = result.split("\n")
        assert lines[5] == "      <h1>My Site</h1>"
        assert lines[6] == "      <p>Tagline</p>"
        assert lines[7] == '      <button className="btn">Log In</button>'
        assert lines[8] == "    </header>"

    def test_overlapping_nodes_keep_outermost(self, indexed, scripted_oracle):
        replacements = [
            NodeReplacement(node_id="node_1", replacement_code="    <nav />"),
            NodeReplacement(node_id="node_3", replacement_code="      <button>Log In</button>"),
        ]
        result = NodeMutator(scripted_oracle).apply(
            indexed, selection_for(indexed, ["node_1", "node_3"]), replacements, HEADER
        )
        assert "    <nav />" in result
        assert "Log In" not in result
        assert "<h1>" not in result

    def test_unselected_replacements_ignored(self, indexed, scripted_oracle):
        replacement = NodeReplacement(node_id="node_2", replacement_code="      <h1>Hacked</h1>")
        result = NodeMutator(scripted_oracle).apply(indexed, selection_for(indexed, ["node_3"]), [replacement], HEADER)
        assert result == HEADER

    def test_changed_content_is_stale(self, indexed, scripted_oracle):
        replacement = NodeReplacement(node_id="node_3", replacement_code="<button>Log In</button>")
        with pytest.raises(StaleParseError):
            NodeMutator(scripted_oracle).apply(
                indexed, selection_for(indexed, ["node_3"]), [replacement], HEADER + "// edited\n"
            )

    def test_required_imports(self, indexed, scripted_oracle):
        replacement = NodeReplacement(
            node_id="node_3",
            replacement_code="      <Button>Log In</Button>",
            required_imports=["import { Button } from './ui/Button';"],
        )
        result = NodeMutator(scripted_oracle).apply(indexed, selection_for(indexed, ["node_3"]), [replacement], HEADER)
        assert result.startswith("import React from 'react';\nimport { Button } from './ui/Button';\n")

    def test_crlf_preserved(self, scripted_oracle):
        crlf = HEADER.replace("\n", "\r\n")
        indexed = ASTIndexer().parse_content("src/components/Header.tsx", crlf)
        replacement = NodeReplacement(node_id="node_3", replacement_code='      <button className="btn">Log In</button>')

        result = NodeMutator(scripted_oracle).apply(indexed, selection_for(indexed, ["node_3"]), [replacement], crlf)
        assert result == crlf.replace("Sign In", "Log In")
