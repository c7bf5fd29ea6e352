"""
ScopeClassifier: decide which strategy applies to a change request.

The oracle gets the first say. A deterministic keyword heuristic is always
computed. It decides outright when the oracle call fails; when the reply is
unusable or not confident enough it is trusted only above
`heuristic_trust_threshold`, else the request is handled as targeted edits.
"""

import re
from typing import Dict, Optional

from patchwright.logging_config import logger
from patchwright.exceptions import ClassificationAmbiguity, OracleError
from patchwright.oracle import ReasoningOracle, field_int, field_str, parse_response
from patchwright.project import build_project_summary
from patchwright.schemas import ModificationScope, ModificationStrategy, ProjectFile
from .config import MODIFICATION_CONFIG, NAME_STOPWORDS, PROMPT_TEMPLATES, SCOPE_KEYWORDS, SCOPE_WEIGHTS


_SINGULAR_TARGET = re.compile(r"\b(one|single|specific|this|that)\s+(button|text|color|element)", re.IGNORECASE)
_PLURAL_TARGET = re.compile(r"\b(all|every|multiple|several)\s+(button|text|element)", re.IGNORECASE)
_PAGE_WORDS = re.compile(r"\b(page|route|screen)\b", re.IGNORECASE)

_NAMED = re.compile(r"\b(?:called|named)\s+[\"']?([A-Za-z][A-Za-z0-9]*)", re.IGNORECASE)
_NOUN_PHRASE = re.compile(
    r"\b([A-Za-z][A-Za-z0-9]*(?:\s+[A-Za-z][A-Za-z0-9]*)?)\s+(?:component|page|screen|view|section|widget)\b",
    re.IGNORECASE,
)
_AFTER_VERB = re.compile(
    r"\b(?:add|create|build|make)\s+(?:(?:a|an|the|new)\s+)*([A-Za-z][A-Za-z0-9]*)",
    re.IGNORECASE,
)


def extract_entity_name(request: str, default: str = "NewComponent") -> str:
    """
    Derive a PascalCase component name from a request.

    Tries "called/named X", then "<words> component|page", then the word
    after add/create/build/make.

    >>> extract_entity_name("add an About page")
    'About'
    >>> extract_entity_name("create a contact form component")
    'ContactForm'
    """
    for pattern in (_NAMED, _NOUN_PHRASE, _AFTER_VERB):
        match = pattern.search(request)
        if not match:
            continue
        words = [w for w in match.group(1).split() if w.lower() not in NAME_STOPWORDS]
        if words:
            return "".join(w[0].upper() + w[1:] for w in words)
    return default


def determine_entity_kind(request: str) -> str:
    return "page" if _PAGE_WORDS.search(request) else "component"


class ScopeClassifier:

    def __init__(self, oracle: ReasoningOracle, config: Optional[Dict] = None):
        self.oracle = oracle
        self.config = {**MODIFICATION_CONFIG, **(config or {})}

    def classify(
        self,
        request: str,
        project_files: Dict[str, ProjectFile],
        conversation_context: str = "",
    ) -> ModificationScope:
        """
        Args:
            request: Natural-language change request
            project_files: Current project file map
            conversation_context: Recent change summary for the oracle

        Returns:
            ModificationScope with exactly one strategy
        """
        heuristic = self.heuristic(request)

        try:
            scope = self._ask_oracle(request, project_files, conversation_context)
        except OracleError as e:
            # no reply at all: the heuristic decides, whatever its confidence
            logger.warning(f"Scope oracle failed ({e}), using heuristic")
            scope = heuristic
        except ClassificationAmbiguity as e:
            logger.warning(f"Scope oracle not confident ({e})")
            scope = None

        if scope is None:
            if heuristic.confidence > self.config["heuristic_trust_threshold"]:
                scope = heuristic
            else:
                scope = ModificationScope(
                    strategy=ModificationStrategy.TARGETED_NODES,
                    reasoning=f"Defaulted to targeted edits; heuristic was inconclusive ({heuristic.reasoning})",
                    confidence=heuristic.confidence,
                )

        if scope.strategy == ModificationStrategy.COMPONENT_ADDITION:
            scope.entity_name = extract_entity_name(request)
            scope.entity_kind = determine_entity_kind(request)
        elif scope.strategy == ModificationStrategy.TARGETED_NODES:
            scope.target_files = sorted(project_files)

        logger.info(f"Scope: {scope.strategy.value} ({scope.confidence}) - {scope.reasoning}")
        return scope

    def _ask_oracle(self, request, project_files, conversation_context) -> Optional[ModificationScope]:
        prompt = PROMPT_TEMPLATES["scope"].format(
            request=request,
            project_summary=build_project_summary(project_files),
            recent_changes=conversation_context or "none",
        )
        reply = parse_response(self.oracle.complete(PROMPT_TEMPLATES["system"], prompt))

        label = field_str(reply, "scope").upper()
        try:
            strategy = ModificationStrategy(label)
        except ValueError:
            logger.warning(f"Scope oracle returned unknown label '{label}'")
            return None

        confidence = field_int(reply, "confidence", default=80)
        if confidence < self.config["classification_min_confidence"]:
            raise ClassificationAmbiguity(confidence, self.config["classification_min_confidence"])

        return ModificationScope(
            strategy=strategy,
            reasoning=field_str(reply, "reasoning", "oracle classification"),
            confidence=confidence,
        )

    def heuristic(self, request: str) -> ModificationScope:
        """
        Keyword scoring. Winner order: component, targeted, full file.
        """
        text = request.lower()
        scores = {
            kind: sum(SCOPE_WEIGHTS[kind] for keyword in keywords if keyword in text)
            for kind, keywords in SCOPE_KEYWORDS.items()
        }

        word_count = len(request.split())
        if word_count <= 5:
            scores["targeted"] += SCOPE_WEIGHTS["short_request_bonus"]
        elif word_count > 15:
            scores["full_file"] += SCOPE_WEIGHTS["long_request_bonus"]

        if _SINGULAR_TARGET.search(request):
            scores["targeted"] += SCOPE_WEIGHTS["singular_target_bonus"]
        if _PLURAL_TARGET.search(request):
            scores["full_file"] += SCOPE_WEIGHTS["plural_target_bonus"]

        reasoning = f"keyword scores component={scores['component']} targeted={scores['targeted']} full_file={scores['full_file']}"

        if scores["component"] > scores["targeted"] and scores["component"] > scores["full_file"]:
            return ModificationScope(
                strategy=ModificationStrategy.COMPONENT_ADDITION,
                reasoning=reasoning,
                confidence=min(95, scores["component"]),
            )
        if scores["targeted"] > scores["full_file"]:
            return ModificationScope(
                strategy=ModificationStrategy.TARGETED_NODES,
                reasoning=reasoning,
                confidence=min(95, scores["targeted"]),
            )
        return ModificationScope(
            strategy=ModificationStrategy.FULL_FILE,
            reasoning=reasoning,
            confidence=min(95, max(50, scores["full_file"])),
        )
