"""YAMLルール読み込み"""
from functools import lru_cache

import yaml
from config import KNOWLEDGE_DIR


@lru_cache(maxsize=1)
def load_pricing_rules() -> dict:
    """pricing_rules.yaml を読み込み（プロセス内でキャッシュ）"""
    rules_path = KNOWLEDGE_DIR / "pricing_rules.yaml"
    with open(rules_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def section_titles() -> dict:
    """セクションキー → 表示タイトル"""
    return dict(load_pricing_rules().get("section_titles", {}))


def section_order() -> list[str]:
    """既定のセクション表示順"""
    return list(load_pricing_rules().get("section_order", []))


def concept_type_label(concept_type: str) -> str:
    """行種別の表示ラベル（未定義なら 'Concepto'）"""
    labels = load_pricing_rules().get("concept_type_labels", {})
    return labels.get(concept_type, "Concepto")
