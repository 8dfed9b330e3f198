"""
JSON Schema Contract Validators

Модуль для валидации JSON данных согласно формальным JSON Schema контрактам.
Использует библиотеку jsonschema для проверки соответствия данных схемам.

Схемы (socialcoin/core/contracts/schema/):
- trade_request.json
- price_quote.json
- subject_state.json
- trade_event.json
- global_config.json
"""

import json
from pathlib import Path
from typing import Any, Dict

import jsonschema
from jsonschema import Draft202012Validator

from socialcoin.core.domain.global_state import GlobalConfig


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """
    Загрузчик JSON Schema файлов.

    Схемы лежат в каталоге schema/ рядом с этим модулем (package data).
    """

    def __init__(self, schema_dir: Path | None = None):
        self._schema_dir = schema_dir or Path(__file__).parent / "schema"
        if not self._schema_dir.exists():
            raise RuntimeError(f"Schema directory not found: {self._schema_dir}")

        # Кэш загруженных схем
        self._schemas: Dict[str, Dict[str, Any]] = {}

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Загрузка JSON Schema файла.

        Args:
            schema_name: Имя схемы без расширения (например, 'trade_request')

        Returns:
            Загруженная схема как dict

        Raises:
            FileNotFoundError: Если файл схемы не найден
            json.JSONDecodeError: Если файл не является валидным JSON
            ValueError: Если схема не является валидной JSON Schema
        """
        if schema_name in self._schemas:
            return self._schemas[schema_name]

        schema_path = self._schema_dir / f"{schema_name}.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")

        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)

        # Валидируем саму схему (meta-validation)
        try:
            Draft202012Validator.check_schema(schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Invalid JSON Schema in {schema_name}.json: {e}")

        self._schemas[schema_name] = schema
        return schema


# Глобальный экземпляр загрузчика
_SCHEMA_LOADER = SchemaLoader()


# =============================================================================
# CONTRACT VALIDATORS
# =============================================================================


class ContractValidator:
    """
    Базовый класс для валидаторов контрактов.

    Инкапсулирует логику валидации данных против JSON Schema.
    """

    def __init__(self, schema_name: str):
        self.schema_name = schema_name
        self.schema = _SCHEMA_LOADER.load_schema(schema_name)
        self.validator = Draft202012Validator(self.schema)

    def validate(self, data: Dict[str, Any]) -> None:
        """
        Валидация данных против схемы.

        Raises:
            ValidationError: Если данные не соответствуют схеме
        """
        self.validator.validate(data)

    def is_valid(self, data: Dict[str, Any]) -> bool:
        """Проверка валидности данных без exception."""
        return self.validator.is_valid(data)

    def iter_errors(self, data: Dict[str, Any]):
        """Итератор по всем ошибкам валидации."""
        return self.validator.iter_errors(data)


class TradeRequestValidator(ContractValidator):
    def __init__(self):
        super().__init__("trade_request")


class PriceQuoteValidator(ContractValidator):
    def __init__(self):
        super().__init__("price_quote")


class SubjectStateValidator(ContractValidator):
    def __init__(self):
        super().__init__("subject_state")


class TradeEventValidator(ContractValidator):
    def __init__(self):
        super().__init__("trade_event")


class GlobalConfigValidator(ContractValidator):
    def __init__(self):
        super().__init__("global_config")


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def validate_trade_request(data: Dict[str, Any]) -> None:
    """
    Валидация trade_request данных.

    Raises:
        ValidationError: Если данные не соответствуют схеме
    """
    TradeRequestValidator().validate(data)


def validate_price_quote(data: Dict[str, Any]) -> None:
    """
    Валидация price_quote данных.

    Raises:
        ValidationError: Если данные не соответствуют схеме
    """
    PriceQuoteValidator().validate(data)


def validate_subject_state(data: Dict[str, Any]) -> None:
    """
    Валидация subject_state данных (снапшот из внешнего хранилища).

    Raises:
        ValidationError: Если данные не соответствуют схеме
    """
    SubjectStateValidator().validate(data)


def validate_trade_event(data: Dict[str, Any]) -> None:
    TradeEventValidator().validate(data)


def validate_global_config(data: Dict[str, Any]) -> None:
    GlobalConfigValidator().validate(data)


# =============================================================================
# CONFIG LOADING
# =============================================================================


def load_global_config(path: str | Path) -> GlobalConfig:
    """
    Загрузка GlobalConfig из JSON файла.

    Сначала контракт (jsonschema), затем Pydantic модель.

    Args:
        path: Путь к JSON файлу конфигурации

    Returns:
        GlobalConfig

    Raises:
        FileNotFoundError: Если файл не найден
        ValidationError: Если конфигурация не соответствует контракту
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    validate_global_config(data)
    return GlobalConfig.model_validate(data)
