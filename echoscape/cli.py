#!/usr/bin/env python3
"""
EchoScape CLI - 感情解析・ビジュアル合成パイプラインの操作ツール
Typer + Rich による対話型ジャーナリングと管理コマンド
"""

import asyncio
import json
import math
from typing import Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .core.config import get_settings
from .core.dependencies import get_container
from .core.exceptions import EchoScapeException
from .core.logging import EchoScapeLogger
from .domain.models.emotion import EmotionSnapshot
from .domain.models.visual import VisualParameters
from .domain.services.crisis import CrisisGate
from .domain.services.visual import build_scene_descriptor, map_to_visual_params

app = typer.Typer(
    name="echoscape",
    help="EchoScape - 感情の指紋から風景を描くジャーナリングAIコンパニオン",
    add_completion=False,
    rich_markup_mode="rich"
)

console = Console()

EXIT_COMMANDS = {"exit", "quit", "bye"}


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, help="ログレベル（DEBUG, INFO, WARNING, ERROR）。省略時は ECHOSCAPE_LOG_LEVEL"
    ),
):
    """
    EchoScape CLI
    """
    if log_level is None:
        settings = get_settings()
        log_level = "DEBUG" if settings.debug else settings.log_level
    EchoScapeLogger.configure(log_level)


def _run(coro) -> Any:
    """コルーチンを実行（ドメイン例外はエラー表示して終了コード1）"""
    try:
        return asyncio.run(coro)
    except EchoScapeException as e:
        console.print(f"[red]エラー: {e.message}[/red]")
        raise typer.Exit(1)


def _emotion_table(snapshot: EmotionSnapshot) -> Table:
    table = Table(show_header=True, header_style="bold magenta", title="感情スナップショット")
    table.add_column("項目", style="cyan")
    table.add_column("値", style="white")
    table.add_row("主要感情", snapshot.primary_emotion)
    table.add_row("二次感情", snapshot.secondary_emotion or "-")
    table.add_row("強度", f"{snapshot.intensity:.2f}")
    table.add_row("信頼度", f"{snapshot.confidence:.2f}")
    table.add_row("メタファー", snapshot.scene_metaphor or "-")
    return table


def _visual_table(params: VisualParameters, title: str = "ビジュアルパラメータ") -> Table:
    table = Table(show_header=True, header_style="bold magenta", title=title)
    table.add_column("パラメータ", style="cyan")
    table.add_column("値", justify="right", style="yellow")
    for key, value in params.to_dict().items():
        table.add_row(key, f"{value:.2f}" if isinstance(value, float) else str(value))
    return table


@app.command()
def analyze(
    text: str = typer.Argument(..., help="解析するテキスト"),
    as_json: bool = typer.Option(False, "--json", help="JSONで出力"),
    no_image: bool = typer.Option(False, "--no-image", help="画像生成をスキップ"),
):
    """
    テキストを1回だけパイプラインに通します（危機判定 → 感情 → ビジュアル → 画像）
    """
    container = get_container()

    async def _analyze() -> dict[str, Any]:
        crisis = CrisisGate().evaluate(text)
        snapshot = await container.get_emotion_service().analyze(text)
        params = map_to_visual_params(snapshot.to_vector())
        metaphor = snapshot.scene_metaphor or f"A representation of {snapshot.primary_emotion}"
        descriptor = build_scene_descriptor(params, metaphor)
        image_url = None
        if not no_image:
            image_url = await container.get_image_client().generate(
                descriptor, snapshot.primary_emotion
            )
        return {
            "crisis": crisis,
            "snapshot": snapshot,
            "params": params,
            "descriptor": descriptor,
            "image_url": image_url,
        }

    result = _run(_analyze())

    if as_json:
        console.print_json(json.dumps({
            "crisis": result["crisis"].to_dict(),
            "emotion": result["snapshot"].to_dict(),
            "visual_params": result["params"].to_dict(),
            "scene_descriptor": result["descriptor"].to_dict(),
            "image_url": result["image_url"],
        }, ensure_ascii=False))
        return

    crisis = result["crisis"]
    if crisis.is_crisis:
        console.print(Panel(
            f"[bold red]危機キーワードを検出しました[/bold red]\n"
            f"キーワード: {', '.join(crisis.detected_keywords)}\n"
            f"リスクスコア: {crisis.risk_score}",
            title="危機判定",
            border_style="red"
        ))

    console.print(_emotion_table(result["snapshot"]))
    console.print(_visual_table(result["params"]))
    console.print(Panel(result["descriptor"].to_prompt(), title="シーンプロンプト"))
    if result["image_url"]:
        console.print(f"🖼️  画像: {result['image_url']}")


@app.command()
def chat(
    session_id: Optional[str] = typer.Option(None, help="再開するセッションID"),
    user_id: Optional[str] = typer.Option(None, help="ユーザーID"),
):
    """
    対話型ジャーナリングセッションを開始します（exit で終了）
    """
    container = get_container()
    service = container.get_journal_service()
    store = container.get_session_store()

    async def _chat() -> None:
        sid = session_id
        if sid is None:
            session = await service.start_session(user_id=user_id)
            sid = session.id
        elif await store.get_session(sid) is None:
            console.print(f"[red]エラー: セッション '{sid}' が見つかりません[/red]")
            raise typer.Exit(1)

        console.print(Panel(
            f"[bold blue]EchoScape[/bold blue]\n"
            f"Hi, I'm Echo. I'm here to listen and help you reflect. How are you feeling right now?\n"
            f"セッション: {sid}\n"
            f"終了するには [bold]exit[/bold] と入力してください",
            title="ジャーナリング"
        ))

        try:
            while True:
                try:
                    message = typer.prompt("you", prompt_suffix="> ")
                except typer.Abort:
                    break
                if message.strip().lower() in EXIT_COMMANDS:
                    break
                if not message.strip():
                    continue

                result = await service.process_message(sid, message)
                snapshot = result.snapshot
                style = "red" if result.is_crisis else "green"
                console.print(Panel(
                    result.reply,
                    title=f"Echo · {snapshot.primary_emotion} ({snapshot.intensity:.2f})",
                    border_style=style
                ))
                console.print(f"🖼️  {result.image_url}")
        finally:
            await store.flush()

        console.print(f"[dim]セッション {sid} を保存しました[/dim]")

    _run(_chat())


@app.command()
def visual(
    session_id: str = typer.Argument(..., help="セッションID"),
):
    """
    セッション全体の感情からベース画像を生成します
    """
    container = get_container()
    service = container.get_journal_service()

    async def _visual():
        try:
            return await service.generate_visual(session_id)
        finally:
            await container.get_session_store().flush()

    result = _run(_visual())
    console.print(_visual_table(result.visual_params))
    console.print(Panel(result.scene_descriptor.to_prompt(), title="シーンプロンプト"))
    console.print(f"🖼️  画像: {result.image_url}")


@app.command()
def reframe(
    session_id: str = typer.Argument(..., help="セッションID"),
    hope: float = typer.Option(0.0, help="希望（明るさ・暖かさ・開放感を上げる）"),
    intensity: float = typer.Option(0.0, help="強度（コントラスト）"),
    openness: float = typer.Option(0.0, help="開放感"),
    warmth: float = typer.Option(0.0, help="暖かさ"),
    light: float = typer.Option(0.0, help="明るさ"),
    variant: Optional[str] = typer.Option(None, help="バリアント名"),
):
    """
    ベースのビジュアルにデルタを適用してリフレーム画像を生成します
    """
    deltas = {
        key: value
        for key, value in (
            ("hope", hope),
            ("intensity", intensity),
            ("openness", openness),
            ("warmth", warmth),
            ("light_level", light),
        )
        if value and math.isfinite(value)
    }
    if not deltas:
        console.print("[red]エラー: 少なくとも1つのデルタを指定してください[/red]")
        raise typer.Exit(1)

    container = get_container()
    service = container.get_journal_service()

    async def _reframe():
        try:
            return await service.reframe_visual(session_id, deltas, variant_name=variant)
        finally:
            await container.get_session_store().flush()

    result = _run(_reframe())
    console.print(_visual_table(result.visual_params, title="リフレーム後のパラメータ"))
    console.print(Panel(result.metaphor, title="メタファー"))
    console.print(f"🖼️  画像: {result.image_url}")


@app.command("reframe-image")
def reframe_image(
    session_id: str = typer.Argument(..., help="セッションID"),
    hope_level: float = typer.Option(..., help="希望度（0-1 または 0-100）"),
    intensity_level: float = typer.Option(..., help="強度（0-1 または 0-100）"),
):
    """
    希望度・強度のムードだけで画像を再生成します
    """
    container = get_container()
    service = container.get_journal_service()

    async def _reframe_image():
        try:
            return await service.reframe_image(session_id, hope_level, intensity_level)
        finally:
            await container.get_session_store().flush()

    image_url = _run(_reframe_image())
    console.print(f"🖼️  画像: {image_url}")


@app.command()
def complete(
    session_id: str = typer.Argument(..., help="セッションID"),
    summary: Optional[str] = typer.Option(None, help="セッションの要約"),
):
    """
    セッションを終了して感情ベクトルを集約します
    """
    container = get_container()
    service = container.get_journal_service()

    async def _complete():
        try:
            return await service.complete_session(session_id, summary=summary)
        finally:
            await container.get_session_store().flush()

    session = _run(_complete())

    table = Table(show_header=True, header_style="bold magenta", title="感情ベクトル")
    table.add_column("感情", style="cyan")
    table.add_column("スコア", justify="right", style="yellow")
    for emotion, score in (session.emotion_data or {}).items():
        table.add_row(emotion, f"{score:.3f}")

    console.print(Panel(
        f"[bold green]セッションを終了しました[/bold green]\n"
        f"主要感情: {session.primary_emotion}",
        title=f"セッション {session.id}"
    ))
    console.print(table)


@app.command()
def sessions(
    limit: int = typer.Option(20, help="表示件数"),
):
    """
    保存済みセッションを新しい順に一覧表示します
    """
    store = get_container().get_session_store()
    items = _run(store.list_sessions(limit=limit))

    if not items:
        console.print("[dim]セッションはまだありません[/dim]")
        return

    table = Table(show_header=True, header_style="bold magenta", title="セッション一覧")
    table.add_column("ID", style="cyan")
    table.add_column("作成日時", style="white")
    table.add_column("主要感情", style="yellow")
    table.add_column("状態", style="green")
    for session in items:
        table.add_row(
            session.id,
            session.created_at.strftime("%Y-%m-%d %H:%M"),
            session.primary_emotion or "-",
            "進行中" if session.is_active else "終了",
        )
    console.print(table)


@app.command()
def version():
    """
    バージョン情報を表示
    """
    console.print(Panel(
        f"[bold blue]EchoScape CLI[/bold blue] v{__version__}\n"
        f"🔧 Built with [bold]Typer[/bold] - The FastAPI of CLIs",
        title="バージョン情報"
    ))


if __name__ == "__main__":
    app()
