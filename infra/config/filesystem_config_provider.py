from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from domain.models import DEFAULT_MAX_RETRIES, AppConfig, CandidateProfile


class ConfigError(ValueError):
    """Raised when config.json or profile.json cannot be turned into domain objects."""


_REQUIRED_CONFIG_KEYS = {"OPENAI_KEY", "OPENAI_BASE_URL"}
_REQUIRED_PROFILE_KEYS = {"first_name", "last_name", "email"}
_PLACEHOLDER_PATTERN = re.compile(r"^YOUR_", re.IGNORECASE)
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]{7,}$")

_BOOL_KEYS = ("headless", "use_vision")
_NUMBER_KEYS = ("inter_task_delay_seconds",)
_INT_KEYS = ("max_retries",)


class FileSystemConfigProvider:
    """Reads config.json and profile.json from a config directory.

    Every public method re-reads from disk so that edits
    to the JSON files take effect without restarting the app.
    """

    def __init__(self, config_dir: str) -> None:
        self._config_dir = Path(config_dir)

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    def validate(self) -> list[str]:
        errors: list[str] = []
        config_path = self._config_dir / "config.json"
        profile_path = self._config_dir / "profile.json"

        config_data = self._validate_json_file(config_path, _REQUIRED_CONFIG_KEYS, errors)
        profile_data = self._validate_json_file(profile_path, _REQUIRED_PROFILE_KEYS, errors)

        if config_data is not None:
            errors.extend(self._validate_config_formats(config_data))
        if profile_data is not None:
            errors.extend(self._validate_profile_formats(profile_data))
            resume = Path(self._cv_path(profile_data))
            if not resume.is_file():
                errors.append(
                    f"Resume not found at {resume}. Place your resume.pdf in the resume/ folder."
                )

        return errors

    @staticmethod
    def _validate_config_formats(data: dict) -> list[str]:
        errors: list[str] = []
        openai_key = str(data.get("OPENAI_KEY", ""))
        if not openai_key or _PLACEHOLDER_PATTERN.search(openai_key) or "YOUR" in openai_key.upper():
            errors.append("OPENAI_KEY is a placeholder. Set your real OpenAI API key.")

        base_url = str(data.get("OPENAI_BASE_URL", ""))
        if not base_url.startswith("https://"):
            errors.append("OPENAI_BASE_URL must start with 'https://'.")

        for key in _BOOL_KEYS:
            value = data.get(key)
            if value is not None and not isinstance(value, bool):
                errors.append(f"{key} must be a boolean (true/false), not a string.")

        for key in _NUMBER_KEYS:
            value = data.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0):
                errors.append(f"{key} must be a non-negative number.")

        for key in _INT_KEYS:
            value = data.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
                errors.append(f"{key} must be a non-negative integer.")

        return errors

    @staticmethod
    def _validate_profile_formats(data: dict) -> list[str]:
        errors: list[str] = []
        for key in ("first_name", "last_name"):
            value = str(data.get(key, "")).strip()
            if not value or value.startswith("Your "):
                errors.append(f"profile.json: {key} is a placeholder. Enter your real name.")

        email = str(data.get("email", ""))
        if not _EMAIL_PATTERN.match(email):
            errors.append(f"profile.json: email '{email}' is not a valid email address.")
        elif email == "your@email.com":
            errors.append("profile.json: email is a placeholder. Enter your real email.")

        phone = data.get("phone")
        if phone is not None and not _PHONE_PATTERN.match(str(phone)):
            errors.append(f"profile.json: phone '{phone}' is not a valid phone number.")

        skills = data.get("skills")
        if skills is not None and not isinstance(skills, list):
            errors.append("profile.json: skills must be a list of strings.")

        return errors

    def get_config(self) -> AppConfig:
        data = self._read_json("config.json")
        try:
            return AppConfig(
                openai_key=data["OPENAI_KEY"],
                openai_base_url=data["OPENAI_BASE_URL"],
                openai_model=str(data.get("OPENAI_MODEL") or "gpt-4o"),
                vision_model=str(data.get("VISION_MODEL") or data.get("OPENAI_MODEL") or "gpt-4o"),
                headless=bool(data.get("headless", True)),
                inter_task_delay_seconds=float(data.get("inter_task_delay_seconds", 1.0)),
                max_retries=int(data.get("max_retries", DEFAULT_MAX_RETRIES)),
                screenshots_dir=str(data.get("screenshots_dir") or "screenshots"),
                use_vision=bool(data.get("use_vision", True)),
            )
        except KeyError as exc:
            raise ConfigError(f"config.json missing key: {exc.args[0]}") from exc
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"config.json has an invalid value: {exc}") from exc

    def get_profile(self) -> CandidateProfile:
        data = self._read_json("profile.json")
        try:
            return CandidateProfile(
                first_name=data["first_name"],
                last_name=data["last_name"],
                email=data["email"],
                phone=data.get("phone"),
                address=data.get("address"),
                city=data.get("city"),
                country=data.get("country"),
                zip_code=data.get("zip_code"),
                desired_position=data.get("desired_position"),
                current_company=data.get("current_company"),
                website=data.get("website"),
                linkedin_url=data.get("linkedin_url"),
                skills=tuple(data.get("skills") or ()),
                cv_file_path=self._cv_path(data),
            )
        except KeyError as exc:
            raise ConfigError(f"profile.json missing key: {exc.args[0]}") from exc

    def get_resume_path(self) -> str:
        return str(self._config_dir / "resume" / "resume.pdf")

    # -- internal helpers ---------------------------------------------------

    def _cv_path(self, data: dict) -> str:
        return str(data.get("cv_file_path") or self.get_resume_path())

    def _read_json(self, filename: str) -> dict[str, Any]:
        path = self._config_dir / filename
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ConfigError(f"Missing file: {path}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Cannot parse {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{path.name} must contain a JSON object")
        return data

    @staticmethod
    def _validate_json_file(
        path: Path,
        required_keys: set[str],
        errors: list[str],
    ) -> dict | None:
        """Validate a JSON file exists and has required keys.

        Returns the parsed dict on success, or None if the file
        is missing or unparseable.
        """
        if not path.is_file():
            errors.append(f"Missing file: {path}")
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            errors.append(f"Cannot read {path}: {exc}")
            return None
        if not isinstance(data, dict):
            errors.append(f"{path.name} must contain a JSON object")
            return None
        missing = required_keys - set(data.keys())
        if missing:
            errors.append(f"{path.name} missing keys: {', '.join(sorted(missing))}")
            return None
        return data
