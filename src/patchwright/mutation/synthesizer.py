"""
ComponentSynthesizer: create new component/page files and route pages.

Classification and generation consult the oracle first. Each has a
deterministic fallback, and an emergency template guarantees a concrete
file even when everything else fails.
"""

import posixpath
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from patchwright.logging_config import logger
from patchwright.exceptions import ClassificationAmbiguity, OracleError
from patchwright.oracle import ParsedResponse, ReasoningOracle, extract_code_block, field_int, field_str, parse_response
from patchwright.project import build_project_summary, find_main_file, load_project_file
from patchwright.sandbox import PathSandbox
from patchwright.schemas import ComponentClassification, ProjectFile
from .config import COMPONENT_KIND_RULES, KIND_FOLDERS, MODIFICATION_CONFIG, PROMPT_TEMPLATES
from .editing import insert_import, write_back
from .scope import extract_entity_name


_ROUTER_IMPORT = re.compile(r"^(\s*import\s*\{)([^}]*)(\}\s*from\s*['\"]react-router-dom['\"];?)", re.MULTILINE)
_ROUTES_CLOSE = re.compile(r"^([ \t]*)</Routes>", re.MULTILINE)
_IDENTIFIER = re.compile(r"[^A-Za-z0-9]")


@dataclass
class SynthesisResult:
    """Outcome of one component addition."""
    classification: ComponentClassification
    created_path: Optional[str] = None
    routed_file: Optional[str] = None
    route_path: Optional[str] = None
    routing_error: Optional[str] = None
    root_file: Optional[str] = None
    used_emergency_template: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.created_path is not None

    @property
    def partial(self) -> bool:
        return self.success and self.routing_error is not None


class ComponentSynthesizer:

    def __init__(self, oracle: ReasoningOracle, config: Optional[Dict] = None):
        self.oracle = oracle
        self.config = {**MODIFICATION_CONFIG, **(config or {})}

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify(self, request: str, hint_name: Optional[str] = None) -> ComponentClassification:
        try:
            return self._classify_with_oracle(request, hint_name)
        except (OracleError, ClassificationAmbiguity) as e:
            logger.warning(f"Component classification falling back to heuristic: {e}")
            return self.fallback_classification(request, hint_name)

    def _classify_with_oracle(self, request: str, hint_name: Optional[str]) -> ComponentClassification:
        reply = parse_response(self.oracle.complete(
            PROMPT_TEMPLATES["system"], PROMPT_TEMPLATES["component_type"].format(request=request)
        ))
        if not isinstance(reply, ParsedResponse):
            raise OracleError("unparsable classification reply", backend=getattr(self.oracle, "name", "oracle"))

        kind = field_str(reply, "type").lower()
        if kind not in KIND_FOLDERS:
            raise OracleError(f"unknown component type '{kind}'", backend=getattr(self.oracle, "name", "oracle"))

        confidence = field_int(reply, "confidence", default=70)
        if confidence < self.config["classification_min_confidence"]:
            raise ClassificationAmbiguity(confidence, self.config["classification_min_confidence"])

        name = _pascal(field_str(reply, "name")) or hint_name or extract_entity_name(request)
        return ComponentClassification(
            name=name,
            kind=kind,
            confidence=confidence,
            reasoning=field_str(reply, "reasoning", "oracle classification"),
        )

    def fallback_classification(self, request: str, hint_name: Optional[str] = None) -> ComponentClassification:
        name = hint_name or extract_entity_name(request)
        for pattern, kind, confidence in COMPONENT_KIND_RULES:
            if re.search(pattern, request, re.IGNORECASE):
                return ComponentClassification(
                    name=name, kind=kind, confidence=confidence, reasoning=f"keyword match {pattern}"
                )
        return ComponentClassification(name=name, kind="component", confidence=60, reasoning="default to component")

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(self, request: str, classification: ComponentClassification,
                 language: str = "tsx", project_summary: str = "") -> str:
        prompt = PROMPT_TEMPLATES["component_generation"].format(
            request=request,
            kind=classification.kind,
            name=classification.name,
            language="TypeScript (TSX)" if language == "tsx" else "JavaScript (JSX)",
            project_summary=project_summary or "none",
        )
        code = extract_code_block(self.oracle.complete(PROMPT_TEMPLATES["system"], prompt))
        if code is None:
            raise OracleError("no code block in generation reply", backend=getattr(self.oracle, "name", "oracle"))
        return code if code.endswith("\n") else code + "\n"

    def emergency_template(self, request: str, classification: Optional[ComponentClassification] = None) -> str:
        """Minimal deterministic component, used when generation fails."""
        name = classification.name if classification else extract_entity_name(request)
        title = re.sub(r"(?<!^)(?=[A-Z])", " ", name)
        description = request.strip().replace("{", "").replace("}", "").replace("<", "").replace(">", "")
        wrapper = "main" if classification is not None and classification.kind == "page" else "section"
        return (
            f"export default function {name}() {{\n"
            f"  return (\n"
            f"    <{wrapper} className=\"{name.lower()}\">\n"
            f"      <h1>{title}</h1>\n"
            f"      <p>{description}</p>\n"
            f"    </{wrapper}>\n"
            f"  );\n"
            f"}}\n"
        )

    # ------------------------------------------------------------------
    # Full flow
    # ------------------------------------------------------------------

    def synthesize(
        self,
        request: str,
        sandbox: PathSandbox,
        project_files: Dict[str, ProjectFile],
        hint_name: Optional[str] = None,
    ) -> SynthesisResult:
        """
        Classify, generate, write the new file and, for pages, route it.

        New files land at <base>/<kind-folder>/<Name>.<ext>, see base_dir().
        """
        classification = self.classify(request, hint_name)
        result = SynthesisResult(classification=classification)
        language = "tsx" if any(p.endswith((".ts", ".tsx")) for p in project_files) else "jsx"
        summary = build_project_summary(project_files)

        try:
            source = self.generate(request, classification, language, summary)
        except OracleError as e:
            logger.warning(f"Component generation failed, using emergency template: {e}")
            result.errors.append(str(e))
            source = self.emergency_template(request, classification)
            result.used_emergency_template = True

        base = self.base_dir(sandbox, project_files)
        name = self.unique_name(sandbox, classification, base)
        if name != classification.name:
            source = rename_component(source, classification.name, name)
            result.classification = classification = classification.model_copy(update={"name": name})

        target = posixpath.join(base, KIND_FOLDERS[classification.kind], f"{name}.{language}")
        write = sandbox.write(target, source)
        if not write.success:
            result.errors.append(write.error or "write failed")
            logger.error(f"Could not create {target}: {write.error}")
            return result

        result.created_path = write.normalized_path
        created = load_project_file(sandbox, write.normalized_path)
        if created is not None:
            project_files[created.relative_path] = created

        if classification.kind == "page":
            self._route_page(result, sandbox, project_files, language)
        return result

    @staticmethod
    def base_dir(sandbox: PathSandbox, project_files: Dict[str, ProjectFile]) -> str:
        """
        Project-relative folder that holds pages/ and components/.

        The sandbox root when it is a subdirectory (strict), else the folder
        of the application root file, else src/.
        """
        if sandbox.level.root_subdir:
            return sandbox.level.root_subdir.strip("/")
        main_file = find_main_file(project_files)
        if main_file is not None:
            return posixpath.dirname(main_file.relative_path)
        return "src"

    def unique_name(self, sandbox: PathSandbox, classification: ComponentClassification, base: str = "") -> str:
        folder = posixpath.join(base, KIND_FOLDERS[classification.kind])
        name = classification.name
        suffix = 2
        while any(sandbox.exists(f"{folder}/{name}.{ext}") for ext in ("tsx", "jsx", "ts", "js")):
            name = f"{classification.name}{suffix}"
            suffix += 1
        return name

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def _route_page(self, result: SynthesisResult, sandbox: PathSandbox,
                    project_files: Dict[str, ProjectFile], language: str) -> None:
        name = result.classification.name
        route = "/" + re.sub(r"(?<!^)(?=[A-Z])", "-", name).lower()
        result.route_path = route

        main_file = find_main_file(project_files)
        if main_file is None:
            result.routing_error = "No application root (App.tsx/App.jsx) to route the page from"
            logger.warning(result.routing_error)
            return

        result.root_file = main_file.relative_path
        # re-read so routing works on the current disk state
        current = sandbox.read(main_file.relative_path)
        if current is None:
            result.routing_error = f"Could not read {main_file.relative_path}"
            return

        specifier = import_specifier(main_file.relative_path, result.created_path)
        updated = self._route_with_oracle(current, main_file.relative_path, name, route, specifier, language)
        if updated is None:
            updated = add_route(current, name, route, specifier)
        if updated is None:
            result.routing_error = f"No <Routes> block in {main_file.relative_path}"
            logger.warning(result.routing_error)
            return

        write, _ = write_back(sandbox, main_file, updated)
        if not write.success:
            result.routing_error = write.error or "write failed"
            return
        result.routed_file = main_file.relative_path

    def _route_with_oracle(self, content: str, path: str, name: str, route: str,
                           specifier: str, language: str) -> Optional[str]:
        prompt = PROMPT_TEMPLATES["route_update"].format(
            name=name, route=route, import_path=specifier, file_path=path, language=language, content=content
        )
        try:
            code = extract_code_block(self.oracle.complete(PROMPT_TEMPLATES["system"], prompt))
        except OracleError as e:
            logger.warning(f"Route update oracle failed: {e}")
            return None
        if code is None or specifier not in code or f'path="{route}"' not in code:
            logger.warning("Route update reply rejected, using deterministic insertion")
            return None
        return code + "\n" if content.endswith("\n") and not code.endswith("\n") else code


def add_route(content: str, name: str, route: str, specifier: Optional[str] = None) -> Optional[str]:
    """
    Deterministically add `import Name from '<specifier>'` (default
    `./pages/Name`) and a <Route> before </Routes>. Returns None when there
    is no <Routes> block.
    """
    close = _ROUTES_CLOSE.search(content)
    if close is None:
        return None

    indent = close.group(1)
    route_line = f'{indent}  <Route path="{route}" element={{<{name} />}} />\n'
    content = content[:close.start()] + route_line + content[close.start():]

    import_line = f"import {name} from '{specifier or './pages/' + name}';"
    if import_line not in content:
        content = insert_import(content, import_line)

    router_import = _ROUTER_IMPORT.search(content)
    if router_import is None:
        content = insert_import(content, "import { Route } from 'react-router-dom';")
    elif not re.search(r"\bRoute\b", router_import.group(2)):
        names = [n.strip() for n in router_import.group(2).split(",") if n.strip()] + ["Route"]
        content = (
            content[:router_import.start()]
            + f"{router_import.group(1)} {', '.join(names)} {router_import.group(3)}"
            + content[router_import.end():]
        )
    return content


def import_specifier(from_file: str, target_file: str) -> str:
    """
    Relative module specifier from one project file to another.

    >>> import_specifier("src/App.tsx", "src/pages/About.tsx")
    './pages/About'
    """
    stem = posixpath.splitext(target_file)[0]
    relative = posixpath.relpath(stem, posixpath.dirname(from_file) or ".")
    return relative if relative.startswith(".") else "./" + relative


def rename_component(source: str, old: str, new: str) -> str:
    """Rename declarations and default exports of `old`; text content is left alone."""
    declaration = re.compile(rf"\b(function|class|const|let|var|export\s+default)(\s+){re.escape(old)}\b")
    return declaration.sub(lambda m: f"{m.group(1)}{m.group(2)}{new}", source)


def _pascal(value: str) -> str:
    words = [w for w in re.split(r"[\s_-]+", value.strip()) if w]
    name = "".join(w[0].upper() + w[1:] for w in words)
    name = _IDENTIFIER.sub("", name)
    return name if name and name[0].isalpha() else ""
