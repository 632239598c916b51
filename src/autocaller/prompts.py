"""
Persona and fixed caller-facing phrases.

The persona can be replaced with SYSTEM_PROMPT (inline) or SYSTEM_PROMPT_FILE
(path, relative paths resolve against the repo root). Both accept the
{AGENT_NAME} / {COMPANY_NAME} placeholders.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from src.autocaller.config import Config

logger = structlog.get_logger(__name__)

_DEFAULT_MAX_PROMPT_CHARS = 40_000

# Spoken lines (Swedish market).
GREETING = "Hej! Jag heter {agent_name} och ringer från {company_name}. Hur mår du idag?"
GREETING_PROMPT = "Säg något så kan vi prata."
GREETING_NO_INPUT = "Jag hörde inget svar. Ha en bra dag!"
REPLY_PROMPT = "Vad tycker du?"
REPLY_NO_INPUT = "Tack så mycket för ditt intresse. Vi hörs snart igen!"
# Follow-up lines when the reply itself was spoken by Twilio's voice.
NATIVE_REPLY_PROMPT = "Vad tycker du om det?"
NATIVE_REPLY_NO_INPUT = "Tack för ditt intresse. Ha en bra dag!"
NOT_UNDERSTOOD_TRANSCRIPT = "Jag förstod inte vad du sa"
EMPTY_REPLY = "Förlåt, jag förstod inte riktigt. Kan du upprepa det?"
DEFAULT_FILLER = "Hej! Tack för att du svarade. Ha en bra dag!"
APOLOGY_NOT_CONFIGURED = "Hej! Tyvärr är AI-systemet inte konfigurerat korrekt. Kontakta support."
APOLOGY_DIALOGUE_FAILED = "Förlåt, jag har tekniska problem just nu. Tack för ditt intresse och ha en bra dag!"
APOLOGY_UNEXPECTED = "Ett tekniskt fel uppstod. Vi ber om ursäkt. Ha en bra dag!"

DEFAULT_PERSONA = """You are {AGENT_NAME}, a friendly Swedish sales agent working for {COMPANY_NAME}. You speak both Swedish and English fluently.

YOUR PERSONALITY:
- Warm, professional, and conversational
- You adapt to the language the customer uses (Swedish or English)
- Ask qualifying questions about their business needs
- Handle objections politely and professionally
- Keep responses concise (1-2 sentences max, this is a phone call)
- Finish with a call to action to book a meeting

YOUR GOAL:
Qualify leads for {COMPANY_NAME}'s automated calling solutions and book meetings.

LANGUAGE RULES:
- If they speak Swedish, respond in Swedish. If they speak English, respond in English.

HANDLING:
- If they seem uninterested, politely try to understand their concerns.
- If they're interested, ask about their business and current calling processes."""


def _repo_root() -> Path:
    # src/autocaller/prompts.py -> repo root is ../../
    return Path(__file__).resolve().parents[2]


def _read_text_file(path: str, *, max_chars: int) -> str:
    if not path:
        return ""

    file_path = Path(path)
    if not file_path.is_absolute():
        file_path = _repo_root() / file_path

    try:
        content = file_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning("Prompt file not found", path=str(file_path))
        return ""
    except UnicodeDecodeError:
        logger.warning("Prompt file decode failed", path=str(file_path))
        return ""

    content = content.strip()
    if len(content) > max_chars:
        logger.warning("Prompt truncated (too long)", path=str(file_path), max_chars=max_chars)
        content = content[:max_chars]

    return content


def _apply_placeholders(prompt: str, config: Config) -> str:
    replacements = {
        "{AGENT_NAME}": config.agent_name,
        "{COMPANY_NAME}": config.company_name,
        "{agent_name}": config.agent_name,
        "{company_name}": config.company_name,
    }
    for key, value in replacements.items():
        prompt = prompt.replace(key, value)

    return prompt


def get_system_prompt(config: Config, *, max_chars: int = _DEFAULT_MAX_PROMPT_CHARS) -> str:
    """
    Resolve the persona from (1) inline text, else (2) file path, else the default.
    """
    prompt = (config.system_prompt or "").strip()
    if not prompt:
        prompt = _read_text_file(config.system_prompt_file, max_chars=max_chars)
    if not prompt:
        prompt = DEFAULT_PERSONA

    return _apply_placeholders(prompt, config)


def greeting_line(config: Config) -> str:
    return _apply_placeholders(GREETING, config)
