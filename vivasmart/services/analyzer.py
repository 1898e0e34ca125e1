# vivasmart/services/analyzer.py
# -*- coding: utf-8 -*-
"""
Generador de preguntas de viva.

Reglas:
  1) Entrada: texto ya extraído del PDF del proyecto (60..15000 caracteres).
  2) Proveedor: Gemini (REST vía httpx, por defecto) u OpenAI (SDK 1.x).
  3) Salida: projectTitle, 10 preguntas {q, a}, hasta 20 keywords y
     5 diagramas {title, explanation}.
Cualquier fallo del proveedor o respuesta inservible => AnalyzerError
(el llamador no descuenta la prueba).
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import httpx
from openai import OpenAI, OpenAIError

from vivasmart.errors import AnalyzerError, InvalidInput

log = logging.getLogger(__name__)

MAX_QUESTIONS = 10
MAX_KEYWORDS = 20
MAX_DIAGRAMS = 5

PROMPT_TEMPLATE = (
    "You are an MSBTE polytechnic viva examiner. Analyze this project and return ONLY valid JSON with:\n"
    "- questions: array of {max_q} {{q,a}} objects (viva questions with short, understandable, easy to read answers)\n"
    "- keywords: array of {max_k} strings (key technical terms)\n"
    "- diagrams: array of {max_d} {{title,explanation}} objects (diagrams the examiner might ask about)\n"
    "- projectTitle: string (inferred project name)\n"
    "PROJECT TEXT: {text}"
)


@dataclass
class AnalysisResult:
    project_title: str
    questions: List[Dict[str, str]] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    diagrams: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projectTitle": self.project_title,
            "questions": self.questions,
            "keywords": self.keywords,
            "diagrams": self.diagrams,
        }


# ---------------------- utilidades ---------------------- #
_FENCE_RX = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_OBJECT_RX = re.compile(r"\{[\s\S]*\}")


def validate_project_text(text: Any, min_chars: int = 60, max_chars: int = 15000) -> str:
    if not isinstance(text, str) or not text.strip():
        raise InvalidInput("Missing text field.")
    if len(text.strip()) < min_chars:
        raise InvalidInput("Text too short. Upload a valid project PDF.")
    if len(text) > max_chars:
        raise InvalidInput(f"Text too long. Max {max_chars:,} characters.")
    return text


def build_prompt(text: str) -> str:
    return PROMPT_TEMPLATE.format(max_q=MAX_QUESTIONS, max_k=MAX_KEYWORDS, max_d=MAX_DIAGRAMS, text=text)


def parse_model_json(raw: str) -> Dict[str, Any]:
    """
    Quita los ```json ... ``` si el modelo los añade; si aun así no es JSON,
    intenta con el primer bloque {...} del texto.
    """
    clean = _FENCE_RX.sub("", (raw or "").strip()).strip()
    try:
        parsed = json.loads(clean)
    except ValueError:
        match = _OBJECT_RX.search(clean)
        if not match:
            raise AnalyzerError("Could not parse AI response.")
        try:
            parsed = json.loads(match.group(0))
        except ValueError:
            raise AnalyzerError("Could not parse AI response.")
    if not isinstance(parsed, dict):
        raise AnalyzerError("Could not parse AI response.")
    return parsed


def _pairs(items: Any, first: str, second: str, limit: int) -> List[Dict[str, str]]:
    out = []
    for item in items if isinstance(items, list) else []:
        if not isinstance(item, Mapping):
            continue
        a, b = str(item.get(first) or "").strip(), str(item.get(second) or "").strip()
        if a:
            out.append({first: a, second: b})
        if len(out) >= limit:
            break
    return out


def shape_result(parsed: Mapping[str, Any]) -> AnalysisResult:
    questions = _pairs(parsed.get("questions"), "q", "a", MAX_QUESTIONS)
    if not questions:
        # sin preguntas no hay nada que cobrar
        raise AnalyzerError("AI response had no questions.")

    raw_keywords = parsed.get("keywords")
    keywords = [str(k).strip() for k in raw_keywords if str(k).strip()] if isinstance(raw_keywords, list) else []

    title = str(parsed.get("projectTitle") or "").strip() or "Your Project"
    return AnalysisResult(
        project_title=title,
        questions=questions,
        keywords=keywords[:MAX_KEYWORDS],
        diagrams=_pairs(parsed.get("diagrams"), "title", "explanation", MAX_DIAGRAMS),
    )


# ---------------------- cliente ---------------------- #
class Analyzer:
    """
    Cliente del LLM. Se crea una vez por app (ver ``from_config``) y se guarda
    en ``app.extensions["vivasmart.analyzer"]``.
    """

    def __init__(
        self,
        provider: str = "gemini",
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        temperature: float = 0.3,
        max_output_tokens: int = 4096,
    ) -> None:
        self.provider = (provider or "gemini").strip().lower()
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "Analyzer":
        provider = (cfg.get("LLM_PROVIDER") or "gemini").strip().lower()
        if provider == "openai":
            return cls(
                provider="openai",
                api_key=cfg.get("OPENAI_API_KEY"),
                model=cfg.get("OPENAI_MODEL", "gpt-4o-mini"),
                timeout=float(cfg.get("ANALYZER_TIMEOUT_SECONDS", 60)),
            )
        return cls(
            provider="gemini",
            api_key=cfg.get("GEMINI_API_KEY"),
            model=cfg.get("GEMINI_MODEL", "gemini-2.5-flash"),
            base_url=cfg.get("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"),
            timeout=float(cfg.get("ANALYZER_TIMEOUT_SECONDS", 60)),
        )

    def analyze(self, text: str) -> AnalysisResult:
        if not self.api_key:
            log.error("ANALYZER_NOT_CONFIGURED provider=%s", self.provider)
            raise AnalyzerError()

        prompt = build_prompt(text)
        if self.provider == "openai":
            raw = self._complete_openai(prompt)
        else:
            raw = self._complete_gemini(prompt)

        if not raw.strip():
            raise AnalyzerError("AI returned an empty response.")
        return shape_result(parse_model_json(raw))

    # ───────────────────────────────
    # GEMINI
    # ───────────────────────────────
    def _complete_gemini(self, prompt: str) -> str:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(url, params={"key": self.api_key}, json=body)
        except httpx.HTTPError as e:
            log.warning("GEMINI_TRANSPORT_ERROR %s", e)
            raise AnalyzerError() from e

        if resp.status_code >= 400:
            detail = "Unknown"
            try:
                err = resp.json()
            except ValueError:
                err = None
            if isinstance(err, dict) and isinstance(err.get("error"), dict):
                detail = err["error"].get("message") or detail
            log.warning("GEMINI_HTTP_ERROR status=%s detail=%s", resp.status_code, detail)
            raise AnalyzerError()

        try:
            data = resp.json()
            return data["candidates"][0]["content"]["parts"][0]["text"] or ""
        except (ValueError, KeyError, IndexError, TypeError):
            return ""

    # ───────────────────────────────
    # OPENAI
    # ───────────────────────────────
    def _complete_openai(self, prompt: str) -> str:
        client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        try:
            resp = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_output_tokens,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            log.warning("OPENAI_ERROR %s", e)
            raise AnalyzerError() from e
        return (resp.choices[0].message.content or "").strip()
