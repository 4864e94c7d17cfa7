"""設定・定数管理"""
import logging
import os
import random
from datetime import date
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# プロジェクトルート
BASE_DIR = Path(__file__).resolve().parent

# パス定数
ASSETS_DIR = BASE_DIR / "assets"
FONTS_DIR = ASSETS_DIR / "fonts"
KNOWLEDGE_DIR = BASE_DIR / "knowledge"

# フォントパス（存在しなければReportLab標準フォントを使用）
FONT_REGULAR = FONTS_DIR / "DejaVuSans.ttf"
FONT_BOLD = FONTS_DIR / "DejaVuSans-Bold.ttf"

# 会社情報
COMPANY_INFO = {
    "name": os.getenv("BUDGET_COMPANY_NAME", "Estudio de Cocinas S.L."),
    "address": os.getenv("BUDGET_COMPANY_ADDRESS", ""),
    "tel": os.getenv("BUDGET_COMPANY_TEL", ""),
    "email": os.getenv("BUDGET_COMPANY_EMAIL", ""),
    "default_representative": os.getenv("BUDGET_REPRESENTATIVE", ""),
}


def _env_float(name: str, default: float) -> float:
    """環境変数を数値として取得（不正値はデフォルト）"""
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


# 税・保存設定
DEFAULT_VAT_PERCENTAGE = _env_float("BUDGET_DEFAULT_VAT", 21.0)  # IVA 21%
SAVE_DEBOUNCE_SECONDS = _env_float("BUDGET_SAVE_DEBOUNCE", 0.8)

# PDF設定
PDF_PAGE_SIZE = "A4"

# ログ設定
LOG_LEVEL = os.getenv("BUDGET_LOG_LEVEL", "INFO").upper()


def setup_logging(level: str = None):
    """ルートロガーを設定（アプリ起動時に一度だけ呼ぶ）"""
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def generate_budget_number() -> str:
    """見積番号を生成（形式: 2026-004217）"""
    return f"{date.today().year}-{random.randint(0, 999999):06d}"
