"""Field Sensitivity Rules

Declarative table deciding which record fields are encrypted and under
which classification. Record traversal lives in ``classifier``; this module
only answers "is this field sensitive".
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from .models import DataClassification

_SEPARATORS = re.compile(r"[\s_\-.]+")
_NAME_TOKENS = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+")


def normalize_field_name(name: str) -> str:
    """Lowercase and drop separators so apiKey, api_key and API-KEY compare equal"""
    return _SEPARATORS.sub("", name).lower()


def name_tokens(name: str) -> Tuple[str, ...]:
    """Split a field name into lowercase words: userSSN -> (user, ssn)"""
    return tuple(token.lower() for token in _NAME_TOKENS.findall(name))


@dataclass(frozen=True)
class SensitivityRule:
    """Field-name fragment mapped to a classification"""
    fragment: str
    classification: DataClassification
    description: str = ""
    whole_word: bool = False

    def matches(self, field_name: str) -> bool:
        # Short acronyms only match a whole word, so businessName is not an ssn
        if self.whole_word:
            return normalize_field_name(self.fragment) in name_tokens(field_name)
        return normalize_field_name(self.fragment) in normalize_field_name(field_name)


DEFAULT_RULES: Tuple[SensitivityRule, ...] = (
    # Credentials
    SensitivityRule("password", DataClassification.RESTRICTED, "passwords"),
    SensitivityRule("passwd", DataClassification.RESTRICTED, "passwords"),
    SensitivityRule("passphrase", DataClassification.RESTRICTED, "passwords"),
    SensitivityRule("secret", DataClassification.RESTRICTED, "client and shared secrets"),
    SensitivityRule("token", DataClassification.RESTRICTED, "access and refresh tokens"),
    SensitivityRule("credential", DataClassification.RESTRICTED, "stored credentials"),
    SensitivityRule("apikey", DataClassification.RESTRICTED, "API keys"),
    SensitivityRule("accesskey", DataClassification.RESTRICTED, "cloud access keys"),
    SensitivityRule("privatekey", DataClassification.RESTRICTED, "private keys"),
    SensitivityRule("encryptionkey", DataClassification.RESTRICTED, "encryption keys"),
    SensitivityRule("signingkey", DataClassification.RESTRICTED, "signing keys"),
    # Government and financial identifiers
    SensitivityRule("ssn", DataClassification.CONFIDENTIAL, "social security numbers", whole_word=True),
    SensitivityRule("socialsecurity", DataClassification.CONFIDENTIAL, "social security numbers"),
    SensitivityRule("taxid", DataClassification.CONFIDENTIAL, "tax identifiers"),
    SensitivityRule("bankaccount", DataClassification.CONFIDENTIAL, "bank account numbers"),
    SensitivityRule("routingnumber", DataClassification.CONFIDENTIAL, "bank routing numbers"),
    SensitivityRule("iban", DataClassification.CONFIDENTIAL, "international bank accounts", whole_word=True),
    SensitivityRule("creditcard", DataClassification.CONFIDENTIAL, "card numbers"),
    SensitivityRule("cardnumber", DataClassification.CONFIDENTIAL, "card numbers"),
)

# Explicit allow-lists for well-known record shapes, keyed by data type
DEFAULT_RECORD_SHAPES: Dict[str, Dict[str, DataClassification]] = {
    "company_profile": {
        "ein": DataClassification.CONFIDENTIAL,
        "dunsNumber": DataClassification.INTERNAL,
        "headquarters": DataClassification.CONFIDENTIAL,
    },
    "cloud_integration": {
        "clientId": DataClassification.CONFIDENTIAL,
        "tenantId": DataClassification.CONFIDENTIAL,
        "serviceAccountJson": DataClassification.RESTRICTED,
    },
    "user_profile": {
        "mfaSecret": DataClassification.RESTRICTED,
        "backupCodes": DataClassification.RESTRICTED,
        "phoneNumber": DataClassification.CONFIDENTIAL,
    },
}


@dataclass
class RuleTable:
    """Ordered name-fragment rules plus per-shape allow-lists

    Allow-list entries win over fragment rules; among fragment rules the
    first match wins.
    """
    rules: Tuple[SensitivityRule, ...] = DEFAULT_RULES
    record_shapes: Mapping[str, Mapping[str, DataClassification]] = field(
        default_factory=lambda: DEFAULT_RECORD_SHAPES
    )

    def classify(self, field_name: str, data_type: Optional[str] = None) -> Optional[DataClassification]:
        """Return the classification for a sensitive field, or None"""
        if not isinstance(field_name, str) or not field_name:
            return None

        if isinstance(data_type, str):
            shape = self.record_shapes.get(data_type, {})
            wanted = normalize_field_name(field_name)
            for name, classification in shape.items():
                if normalize_field_name(name) == wanted:
                    return classification

        for rule in self.rules:
            if rule.matches(field_name):
                return rule.classification
        return None

    def is_sensitive(self, field_name: str, data_type: Optional[str] = None) -> bool:
        return self.classify(field_name, data_type) is not None

    def extend(self, *rules: SensitivityRule) -> "RuleTable":
        """Return a new table with additional fragment rules appended"""
        return RuleTable(rules=tuple(self.rules) + rules, record_shapes=self.record_shapes)
