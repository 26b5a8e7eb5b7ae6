# === FILE: site_intel/cli.py ===
"""
Точка входа для запуска конвейера SiteIntel через командную строку.

Команды:
  run DOMAIN  Запустить конвейер для домена и вывести/сохранить результат
  config      Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stderr, если не указан)
  --log-format FORMAT Формат логирования

Команда run опции:
  --max-pages INT     Лимит страниц (override max_pages)
  --timeout SEC       Таймаут одной загрузки (override timeout)
  --mode MODE         initial | dynamic | incremental
  --skip PHASE        Пропустить фазу (можно несколько раз)
  --url URL           Явный список URL вместо discovery (можно несколько раз)
  --stream            Печатать события прогресса в stdout (data: {...})
  --json PATH         Сохранить JSON-отчёт в файл
  --html PATH         Сохранить HTML-отчёт в файл
  --pretty            Преформатировать JSON-вывод (отступ 2)
  --store DIR         Каталог для чекпоинтов сессии
  --session ID        Идентификатор сессии (для --store и режима incremental)

Дополнительно:
  --version, -v       Показать версию SiteIntel

Пример:
  site-intel run example.com --max-pages 50 --skip enhancement --json report.json --pretty
"""
import asyncio
import signal
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from site_intel import __version__
from site_intel.config import RunMode, RunOptions, load_config
from site_intel.engine import run_pipeline
from site_intel.events import Phase, StreamWriter
from site_intel.logger import init_logging, logger
from site_intel.persistence import JsonFileSessionStore
from site_intel.report.html_report import render_html
from site_intel.report.json_report import render_json

CONTEXT_SETTINGS = dict(help_option_names=["--help"])

SKIPPABLE = [p.value for p in Phase if p is not Phase.COMPLETE]


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteIntel, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stderr, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд SiteIntel CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except (OSError, ValueError, TypeError, ValidationError) as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


async def _execute(domain, options, cfg, store):
    """Запускает конвейер; Ctrl+C превращается в мягкую отмену с частичным результатом.

    При options.stream события конвейера пишутся в stdout в формате `data: {...}`.
    """
    abort = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, abort.set)
        installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        installed = False

    subscribers = []
    writer = None
    if options.stream:
        writer = StreamWriter(click.get_text_stream('stdout'))
        subscribers.append(writer)
    try:
        return await run_pipeline(
            domain, options, cfg, store=store, abort=abort, subscribers=subscribers
        )
    finally:
        if writer is not None:
            await writer.close()
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


@cli.command('run', context_settings=CONTEXT_SETTINGS)
@click.argument('domain')
@click.option('--max-pages', 'max_pages', type=click.IntRange(min=1), default=None,
              help='Лимит страниц (override max_pages)')
@click.option('--timeout', 'timeout', type=click.FloatRange(min=0, min_open=True), default=None,
              help='Таймаут одной загрузки, секунд (override timeout)')
@click.option('--mode', 'mode', type=click.Choice([m.value for m in RunMode]),
              default=RunMode.INITIAL.value, show_default=True, help='Режим запуска')
@click.option('--skip', 'skip', multiple=True, type=click.Choice(SKIPPABLE),
              help='Пропустить фазу (можно несколько раз)')
@click.option('--url', 'urls', multiple=True, help='Явный URL вместо discovery (можно несколько раз)')
@click.option('--stream', is_flag=True, help='Печатать события прогресса в stdout')
@click.option('--json', '-j', 'json_output', default=None,
              type=click.Path(writable=True, dir_okay=False, path_type=Path),
              help='Сохранить JSON-отчёт в файл')
@click.option('--html', 'html_output', default=None,
              type=click.Path(writable=True, dir_okay=False, path_type=Path),
              help='Сохранить HTML-отчёт в файл')
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.option('--store', 'store_dir', default=None,
              type=click.Path(file_okay=False, path_type=Path),
              help='Каталог для чекпоинтов сессии')
@click.option('--session', 'session_id', default=None, help='Идентификатор сессии')
@click.pass_context
def run(ctx, domain, max_pages, timeout, mode, skip, urls, stream, json_output, html_output,
        pretty, store_dir, session_id):
    """Запустить конвейер для DOMAIN и сформировать отчёты."""
    cfg = ctx.obj['config']
    try:
        options = RunOptions(
            max_pages=max_pages,
            timeout=timeout,
            mode=RunMode(mode),
            skip_phases=[Phase(s) for s in skip] if skip else None,
            stream=stream,
            session_id=session_id,
            urls=list(urls) or None,
        )
    except ValidationError as e:
        print_error(f'Неверные параметры запуска: {e}')

    if store_dir is not None and not session_id:
        print_error('--store требует --session')
    store = JsonFileSessionStore(store_dir) if store_dir is not None else None

    logger.info('Starting run for %s', domain)
    try:
        result = asyncio.run(_execute(domain, options, cfg, store))
    except Exception as e:
        print_error(f'Ошибка при выполнении: {e}')

    summary = result.summary
    if summary.partial:
        click.secho(
            f'Partial result: {summary.succeeded} ok, {summary.failed} failed'
            + (' (aborted)' if summary.aborted else ''),
            fg='yellow', err=True,
        )

    if not stream and not json_output and not html_output:
        click.echo(result.json(pretty=pretty))

    if json_output:
        try:
            saved_json = render_json(result, json_output, pretty=pretty)
            click.echo(f'JSON report: {saved_json}', err=stream)
        except (OSError, TypeError, ValueError) as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(result, html_output)
            click.echo(f'HTML report: {saved_html}', err=stream)
        except Exception as e:
            print_error(f'Ошибка при сохранении HTML: {e}')

    if summary.fatal_error:
        print_error(f'Прогон завершился с ошибкой: {summary.fatal_error}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
