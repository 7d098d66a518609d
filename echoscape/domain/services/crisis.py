"""
危機ゲート
決定的なキーワード走査による危機検出（パイプラインの最初に実行）
"""

from ..models.emotion import CrisisResult


# 宣言順で検出キーワードを返す
CRISIS_KEYWORDS: tuple[str, ...] = (
    "suicide",
    "kill myself",
    "end it all",
    "better off dead",
    "hurt myself",
    "cutting",
    "overdose",
    "die",
    "death",
)

CRISIS_RISK_SCORE = 0.9


class CrisisGate:
    """
    危機ゲート

    大文字小文字を区別しない部分文字列一致のみ。副作用なし、例外なし。
    ログ出力やパイプライン継続の判断は呼び出し側が行う。
    """

    def __init__(self, keywords: tuple[str, ...] = CRISIS_KEYWORDS):
        self._keywords = tuple(kw.lower() for kw in keywords)

    def evaluate(self, text: str | None) -> CrisisResult:
        """テキストを評価して CrisisResult を返す"""
        lowered = (text or "").lower()
        detected = tuple(kw for kw in self._keywords if kw in lowered)
        is_crisis = bool(detected)

        return CrisisResult(
            is_crisis=is_crisis,
            risk_score=CRISIS_RISK_SCORE if is_crisis else 0.0,
            detected_keywords=detected,
        )
