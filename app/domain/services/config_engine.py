"""
CONFIG ENGINE
Load, validate, and expose domain configuration

RESPONSIBILITIES:
- Load YAML configuration files
- Validate configuration integrity
- Expose read-only typed objects

RULES:
❌ No defaults if config missing
✅ Fail fast on invalid config
✅ Deterministic output
"""

import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class YieldRankingConfig:
    """Allow-lists, bounds and risk thresholds for the yield ranking pipeline"""
    chain: str
    supported_protocols: Tuple[str, ...]
    extended_protocols: Tuple[str, ...]
    max_results: int
    max_results_extended: int
    default_min_tvl: float
    high_apy_threshold: float
    medium_apy_threshold: float
    secondary_protocol: str
    secondary_pool: str

    def __post_init__(self):
        if not self.supported_protocols:
            raise ValueError("At least one supported protocol is required")
        overlap = set(self.supported_protocols) & set(self.extended_protocols)
        if overlap:
            raise ValueError(f"Protocols listed as both supported and extended: {sorted(overlap)}")
        if self.max_results < 1 or self.max_results_extended < self.max_results:
            raise ValueError("Result bounds must satisfy 1 <= max_results <= max_results_extended")
        if self.medium_apy_threshold > self.high_apy_threshold:
            raise ValueError("medium_apy_threshold cannot exceed high_apy_threshold")


@dataclass(frozen=True)
class VerificationProtocolConfig:
    """Metadata advertised by the commitment/verify endpoints"""
    name: str
    description: str
    default_agent: str
    docs_url: str
    onchain_lookup_url: str
    features: Tuple[str, ...]


@dataclass(frozen=True)
class ComplianceConfig:
    """Compliance metadata attached to JSON exports"""
    standard: str
    data_retention_policy: str
    export_purpose: str
    regulatory_references: Tuple[str, ...]
    disclaimer: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "standard": self.standard,
            "dataRetentionPolicy": self.data_retention_policy,
            "exportPurpose": self.export_purpose,
            "regulatoryReferences": list(self.regulatory_references),
            "disclaimer": self.disclaimer,
        }


@dataclass(frozen=True)
class AuditConfig:
    """Audit trail export and replay settings"""
    export_version: str
    replay_context_size: int
    recent_commitments_limit: int
    compliance: ComplianceConfig


class ConfigEngine:
    """
    Configuration Engine
    Single source of truth for domain configuration
    """

    def __init__(self, config_dir: Path):
        """Initialize with config directory"""
        self.config_dir = config_dir
        self._yield_ranking: YieldRankingConfig = None
        self._verification: VerificationProtocolConfig = None
        self._audit: AuditConfig = None
        self._app_config: Dict = None

    def load_all(self) -> None:
        """Load all configuration files"""
        self._load_app_config()
        self._load_yields()
        self._load_verification()
        self._load_audit()

    def _read_yaml(self, filename: str) -> Dict[str, Any]:
        path = self.config_dir / filename
        if not path.exists():
            raise FileNotFoundError(f"Config not found: {path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Invalid config format in {path}. Expected a mapping.")
        return data

    def _load_app_config(self) -> None:
        """Load application config from app.yml"""
        self._app_config = self._read_yaml("app.yml")

    def _load_yields(self) -> None:
        """Load yield ranking rules from yields.yml"""
        data = self._read_yaml("yields.yml")['yields']
        risk = data['risk']
        secondary = data['secondary_source']

        self._yield_ranking = YieldRankingConfig(
            chain=data['chain'],
            supported_protocols=tuple(p.lower() for p in data['supported_protocols']),
            extended_protocols=tuple(p.lower() for p in data.get('extended_protocols') or []),
            max_results=int(data['max_results']),
            max_results_extended=int(data['max_results_extended']),
            default_min_tvl=float(data['default_min_tvl']),
            high_apy_threshold=float(risk['high_apy_threshold']),
            medium_apy_threshold=float(risk['medium_apy_threshold']),
            secondary_protocol=secondary['protocol'],
            secondary_pool=secondary['pool'],
        )

    def _load_verification(self) -> None:
        """Load verification protocol metadata from app.yml"""
        data = self._app_config['verification']
        self._verification = VerificationProtocolConfig(
            name=data['protocol'],
            description=data['description'],
            default_agent=data['default_agent'],
            docs_url=data['docs_url'],
            onchain_lookup_url=data['onchain_lookup_url'],
            features=tuple(data.get('features') or []),
        )

    def _load_audit(self) -> None:
        """Load audit trail settings from app.yml"""
        data = self._app_config['audit']
        compliance = data['compliance']
        self._audit = AuditConfig(
            export_version=str(data['export_version']),
            replay_context_size=int(data['replay_context_size']),
            recent_commitments_limit=int(data['recent_commitments_limit']),
            compliance=ComplianceConfig(
                standard=compliance['standard'],
                data_retention_policy=compliance['data_retention_policy'],
                export_purpose=compliance['export_purpose'],
                regulatory_references=tuple(compliance.get('regulatory_references') or []),
                disclaimer=compliance['disclaimer'],
            ),
        )
        if self._audit.replay_context_size < 0 or self._audit.recent_commitments_limit < 1:
            raise ValueError("Audit limits must be positive")

    # Public getters

    @property
    def yield_ranking(self) -> YieldRankingConfig:
        """Get yield ranking configuration"""
        if self._yield_ranking is None:
            raise RuntimeError("Config not loaded. Call load_all() first")
        return self._yield_ranking

    @property
    def verification(self) -> VerificationProtocolConfig:
        """Get verification protocol metadata"""
        if self._verification is None:
            raise RuntimeError("Config not loaded. Call load_all() first")
        return self._verification

    @property
    def audit(self) -> AuditConfig:
        """Get audit trail settings"""
        if self._audit is None:
            raise RuntimeError("Config not loaded. Call load_all() first")
        return self._audit

    def get_app_setting(self, *keys) -> Any:
        """Get app setting by nested keys"""
        if self._app_config is None:
            raise RuntimeError("Config not loaded. Call load_all() first")

        value = self._app_config
        for key in keys:
            value = value[key]
        return value
