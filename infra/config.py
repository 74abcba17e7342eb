from __future__ import annotations
import yaml
from dataclasses import dataclass
from pathlib import Path


DEFAULT_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


@dataclass(frozen=True)
class ConciliacionConfig:
    peso_importe: int
    peso_fecha: int
    peso_descripcion: int
    umbral_aceptacion: int
    ventana_dias: int
    stopwords: list[str]


@dataclass(frozen=True)
class LecturaConfig:
    encodings: list[str]
    csv_separadores: list[str]
    csv_formatos_fecha: list[str]
    extensiones: list[str]


@dataclass(frozen=True)
class LedgerConfig:
    moneda_default: str
    estado_creacion: str
    centro_costo_credito: str | None
    creado_por: str


@dataclass(frozen=True)
class Config:
    conciliacion: ConciliacionConfig
    lectura: LecturaConfig
    ledger: LedgerConfig


def load_config(path: str | Path = DEFAULT_PATH) -> Config:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    conc = ConciliacionConfig(**data["conciliacion"])
    # YAML 1.1: no, yes, on, off sin comillas se leen como booleanos
    no_texto = [w for w in (conc.stopwords or []) if not isinstance(w, str)]
    if no_texto:
        raise ValueError(f"Stopwords deben ser texto (usar comillas en config.yaml): {no_texto}")
    lec = LecturaConfig(**data["lectura"])
    led = LedgerConfig(**data["ledger"])

    return Config(conciliacion=conc, lectura=lec, ledger=led)
