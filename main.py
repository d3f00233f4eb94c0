"""
Main entry point for the operator signal bot
"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from config import ConfigLoader
from operator_bot.logging_setup import setup_logging
from operator_bot.service import build_service

console = Console()


def _signals_table(signals: List[Dict[str, Any]], title: str) -> Table:
    table = Table(title=title, box=box.ROUNDED)

    table.add_column("Symbol", style="cyan")
    table.add_column("TF", style="white")
    table.add_column("Dir", style="bold")
    table.add_column("Entry", style="yellow")
    table.add_column("SL", style="red")
    table.add_column("TP", style="green")
    table.add_column("RR", style="magenta")
    table.add_column("Conf", style="blue")

    for signal in signals:
        direction = signal.get('signal_type') or signal.get('direction')
        dir_style = "bold green" if direction == "BUY" else "bold red"
        table.add_row(
            signal['symbol'],
            signal['timeframe'],
            Text(direction, style=dir_style),
            f"{signal['entry_price']:.5f}",
            f"{signal['stop_loss']:.5f}",
            f"{signal['take_profit']:.5f}",
            f"{signal.get('risk_reward_ratio', signal.get('reward_risk_ratio')):.2f}",
            f"{signal.get('confidence_score', signal.get('confidence'))}%"
        )

    if not signals:
        table.add_row("-", "-", "-", "-", "-", "-", "-", "[dim]No signals[/]")

    return table


def render(action: str, status: int, payload: Dict[str, Any]) -> None:
    """Print an action result"""
    if status != 200:
        console.print(f"[bold red]Error ({status}):[/] {payload.get('error')}")
        return

    if action == 'analyze_single':
        signal = payload.get('signal')
        console.print(_signals_table([signal] if signal else [], "🔎 Operator Analysis"))
        if signal:
            console.print(signal['reasoning'])
    elif action == 'run_bot':
        console.print(_signals_table(payload['signals'], "🚨 Generated Signals"))
        console.print(f"Signals generated: [bold]{payload['signalsGenerated']}[/]")
    else:
        console.print(f"Signal sent to [bold]{payload['sentToUsers']}[/] users")


async def run_action(service, body: Dict[str, Any]) -> int:
    try:
        status, payload = await service.handle(body)
    finally:
        await service.provider.close()

    render(body['action'], status, payload)
    return 0 if status == 200 else 1


def serve(service, host: str, port: int) -> None:
    import uvicorn
    from operator_bot.web.app import create_app

    uvicorn.run(create_app(service), host=host, port=port, reload=False, log_level="info")


def main():
    """Main function with command line argument parsing"""
    parser = argparse.ArgumentParser(
        description='Operator Signal Bot - Market Structure Analysis',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py analyze EURUSD
  python main.py run-bot operator
  python main.py send 0b6f1c1e-3c1e-4a8f-9d55-1f2a3b4c5d6e
  python main.py serve --port 8000
        """
    )
    parser.add_argument('--config', default='config/bot.yaml',
                        help='YAML configuration file (default: config/bot.yaml)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    analyze_parser = subparsers.add_parser('analyze', help='Analyze one symbol on H1')
    analyze_parser.add_argument('symbol')

    run_parser = subparsers.add_parser('run-bot', help='Run one batch for a configured bot')
    run_parser.add_argument('bot_type')

    send_parser = subparsers.add_parser('send', help='Broadcast a stored signal')
    send_parser.add_argument('signal_id')

    serve_parser = subparsers.add_parser('serve', help='Start the HTTP service')
    serve_parser.add_argument('--host', default='0.0.0.0')
    serve_parser.add_argument('--port', type=int, default=8000)

    args = parser.parse_args()

    loader = ConfigLoader(args.config)
    config = loader.load()
    setup_logging(config.log_level, str(Path(config.logs_dir) / 'operator_bot.log'))

    service = build_service(config, loader)

    if args.command == 'serve':
        serve(service, args.host, args.port)
        return

    if args.command == 'analyze':
        body = {'action': 'analyze_single', 'symbol': args.symbol}
    elif args.command == 'run-bot':
        body = {'action': 'run_bot', 'botType': args.bot_type}
    else:
        body = {'action': 'send_signal_to_users', 'signalId': args.signal_id}

    sys.exit(asyncio.run(run_action(service, body)))


if __name__ == '__main__':
    main()
