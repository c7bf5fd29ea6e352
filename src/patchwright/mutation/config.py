"""
Configuration for the modification strategies.

Contains thresholds, keyword tables for the deterministic fallbacks and
the oracle prompt templates.
"""

MODIFICATION_CONFIG = {
    "relevance_threshold": 70,  # Minimum selection confidence to edit a file
    "max_workers": 2,  # Concurrent per-file oracle analyses
    "heuristic_trust_threshold": 60,  # Heuristic scope adopted above this confidence
    "classification_min_confidence": 50,  # Oracle classifications below this are ambiguous
    "file_selection_threshold": 25,  # Fallback score needed for full-file rewrite
    "max_full_file_targets": 5,
    "recent_changes_in_context": 5,
}

SCOPE_KEYWORDS = {
    "component": [
        "create", "add new", "build new", "make new", "new component", "new page",
        "new feature", "add a", "build a", "create a", "add an", "build an", "create an",
    ],
    "targeted": [
        "change button", "make button", "button color", "button text", "change text",
        "update text", "modify text", "text to", "change color", "make red", "make blue",
        "make green", "change label", "update label", "modify label", "one button",
        "single button", "this button", "the button", "specific", "only", "just change",
        "just update",
    ],
    "full_file": [
        "redesign", "overhaul", "complete", "entire", "whole", "layout", "theme",
        "styling", "responsive", "mobile", "restructure", "rearrange", "organize",
        "reorder", "multiple", "several", "all buttons", "all text", "dark mode",
        "light mode", "header", "footer", "navigation",
    ],
}

SCOPE_WEIGHTS = {
    "component": 20,
    "targeted": 15,
    "full_file": 10,
    "short_request_bonus": 20,  # <= 5 words favours targeted
    "long_request_bonus": 10,  # > 15 words favours full file
    "singular_target_bonus": 25,
    "plural_target_bonus": 20,
}

# Component kind fallback vocabulary: (pattern, kind, confidence)
COMPONENT_KIND_RULES = [
    (r"\b(page|route|screen|view)\b", "page", 80),
    (r"\b(component|section|widget|form)\b", "component", 80),
    (r"\b(about|contact|services|portfolio|blog|news|dashboard|profile|settings)\b", "page", 70),
    (r"\b(table|list|card|modal|dropdown|button|input|chart)\b", "component", 75),
]

KIND_FOLDERS = {
    "page": "pages",
    "component": "components",
}

# Words dropped when deriving a component name from a request
NAME_STOPWORDS = {
    "a", "an", "the", "new", "my", "our", "add", "create", "build", "make",
    "component", "page", "screen", "view", "section", "widget", "simple",
}

PROMPT_TEMPLATES = {
    "system": """You are a senior React engineer editing an existing Vite + React project.
Follow the requested reply format exactly. Never invent files that were not listed.""",

    "scope": """Classify how this change request should be applied.

Request: {request}

Project overview:
{project_summary}

Recent changes:
{recent_changes}

Choose exactly one scope:
- TARGETED_NODES: small edits to specific elements (a label, a colour, one button)
- FULL_FILE: cross-cutting changes (theme, layout, many elements at once)
- COMPONENT_ADDITION: a new component or page

Reply with JSON:
```json
{{"scope": "TARGETED_NODES", "confidence": 85, "reasoning": "<one sentence>"}}
```
""",

    "node_selection": """File: {file_path}
Request: {request}

Markup elements in this file:
{node_list}

Does this file need to change to satisfy the request? If so, which elements?

Reply in this format:
RELEVANT: YES or NO
SCORE: 0-100
REASON: <one sentence>
TARGETS: comma-separated element ids, e.g. node_1,node_3
""",

    "node_modification": """Request: {request}
File: {file_path}

Project context:
{context}

Modify only the elements below. Each block is the exact line range the
element occupies; your replacement substitutes those lines. Keep indentation
and anything on those lines that the request does not touch.

{node_blocks}

Reply with a JSON object mapping element ids to replacements:
```json
{{"node_1": {{"modifiedCode": "<replacement lines>", "requiredImports": []}}}}
```
Leave out elements that need no change.
""",

    "file_selection": """Request: {request}

Project files:
{file_list}

Which files must be rewritten to satisfy this request? Reply with a JSON array:
```json
[{{"filePath": "src/App.tsx", "relevanceScore": 90, "reasoning": "<why>", "changeType": "modify", "priority": "high"}}]
```
""",

    "full_file": """Request: {request}
File: {file_path}

Project overview:
{project_summary}

Current content:
```{language}
{content}
```

Rewrite the whole file to satisfy the request. Keep exports and imports that
other files rely on. Return the complete file in one fenced code block.
""",

    "full_file_batch": """Request: {request}

Project overview:
{project_summary}

Files to rewrite:
{file_blocks}

Rewrite each file to satisfy the request. Return every file as its own fenced
code block whose first line is a comment of the form // FILE: <path>.
""",

    "component_type": """Request: {request}

Should this be a reusable component or a routed page?

Reply in this format:
TYPE: component or page
NAME: PascalCase name
CONFIDENCE: 0-100
REASONING: <one sentence>
""",

    "component_generation": """Request: {request}

Create a React {kind} named {name} in {language}.

Project overview:
{project_summary}

Use a default export named {name}. Return the complete file in one fenced code block.
""",

    "route_update": """Make the new page reachable from the application root.

Page component: {name}
Import line: import {name} from '{import_path}';
Route: <Route path="{route}" element={{<{name} />}} />

Current content of {file_path}:
```{language}
{content}
```

Add the import and the route inside the existing <Routes>. If the file has no
router yet, add BrowserRouter, Routes and Route from react-router-dom.
Return the complete file in one fenced code block.
""",
}
