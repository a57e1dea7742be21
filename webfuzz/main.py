import argparse
import sys
import threading

from webfuzz.core.config import Delay, JobSpec
from webfuzz.core.engine import Engine
from webfuzz.core.errors import ConfigurationError, FuzzError, Multierror
from webfuzz.core.executor import HttpxExecutor
from webfuzz.inputs.base import DEFAULT_KEYWORD, TEMPLATE_MARKER
from webfuzz.inputs.command import Command
from webfuzz.inputs.wordlist import Wordlist
from webfuzz.parsers.request import RawRequest
from webfuzz.reporters.console import BufferedSink, ConsoleSink, Log

_RULE_FLAGS = [("c", "status"), ("s", "size"), ("w", "words"),
               ("l", "lines"), ("t", "time"), ("r", "regex")]


def _split_binding(value: str):
    """'path:KEYWORD' -> ('path', 'KEYWORD'); plain 'path' -> ('path', None)."""
    source, sep, keyword = value.partition(":")
    return (source, keyword) if sep and keyword else (value, None)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Web content and parameter fuzzer")
    t = p.add_argument_group("request")
    t.add_argument("-u", "--url", default="", help="Target URL with FUZZ keyword(s)")
    t.add_argument("--request", help="Raw request file")
    t.add_argument("--request-proto", default="https", choices=["http", "https"])
    t.add_argument("-X", "--method", default="", help="HTTP method")
    t.add_argument("-H", "--header", action="append", default=[],
                   help="'Name: value', repeatable")
    t.add_argument("-b", "--cookie", action="append", default=[])
    t.add_argument("-d", "--data", default="", help="POST data")
    t.add_argument("--proxy", help="Proxy (ej: http://127.0.0.1:8080)")
    t.add_argument("--replay-proxy", help="Replay accepted requests through this proxy")
    t.add_argument("-r", "--follow-redirects", action="store_true")
    t.add_argument("--timeout", type=float, default=10)
    t.add_argument("--http2", action="store_true")
    t.add_argument("--ignore-body", action="store_true")

    i = p.add_argument_group("input")
    i.add_argument("-w", "--wordlist", action="append", default=[],
                   help="Wordlist path[:KEYWORD], repeatable")
    i.add_argument("--input-cmd", action="append", default=[],
                   help="Command[:KEYWORD] producing one value per line")
    i.add_argument("--input-num", type=int, default=None,
                   help="Number of values to take from input commands")
    i.add_argument("--input-shell", default="", help="Shell used for input commands")
    i.add_argument("--mode", default="clusterbomb",
                   choices=["clusterbomb", "pitchfork", "sniper"])
    i.add_argument("--enc", action="append", default=[],
                   help="KEYWORD:'encoder1 encoder2', repeatable")
    i.add_argument("-e", "--extensions", default="", help="Comma separated, e.g. .php,.bak")
    i.add_argument("-D", "--dirsearch", action="store_true")
    i.add_argument("--ic", action="store_true", help="Ignore wordlist comments")

    g = p.add_argument_group("general")
    g.add_argument("-t", "--threads", type=int, default=40)
    g.add_argument("-p", "--delay", default="", help="'0.1' or '0.1-2.0' seconds")
    g.add_argument("--rate", type=float, default=0, help="Requests per second")
    g.add_argument("--maxtime", type=float, default=0)
    g.add_argument("--maxtime-job", type=float, default=0)
    g.add_argument("--sa", action="store_true", help="Stop on all error cases")
    g.add_argument("--se", action="store_true", help="Stop on consecutive errors")
    g.add_argument("--se-threshold", type=int, default=5)
    g.add_argument("--sf", action="store_true", help="Stop on consecutive 403s")
    g.add_argument("--sf-threshold", type=int, default=10)
    g.add_argument("--ac", action="store_true", help="Auto-calibrate filtering")
    g.add_argument("--ach", action="store_true", help="Per host auto-calibration")
    g.add_argument("--acs", action="append", default=[], help="Calibration strategy")
    g.add_argument("--acc", action="append", default=[], help="Custom calibration string")
    g.add_argument("--recursion", action="store_true")
    g.add_argument("--recursion-depth", type=int, default=0)
    g.add_argument("--recursion-strategy", default="default",
                   choices=["default", "greedy"])
    g.add_argument("--ecr", default="",
                   help="Status codes excluded from recursion, e.g. 403,404")
    g.add_argument("-v", "--verbose", action="count", default=1, help="-v, -vv")
    g.add_argument("-s", "--silent", action="store_true")

    m = p.add_argument_group("matchers / filters")
    for short, kind in _RULE_FLAGS:
        m.add_argument(f"--m{short}", dest=f"m_{kind}", help=f"Match {kind}")
        m.add_argument(f"--f{short}", dest=f"f_{kind}", help=f"Filter {kind}")
    m.add_argument("--mmode", default="or", choices=["and", "or"])
    m.add_argument("--fmode", default="or", choices=["and", "or"])
    return p


def spec_from_args(args) -> JobSpec:
    errs = Multierror()
    sniper = args.mode == "sniper"
    template = TEMPLATE_MARKER if sniper else ""
    exts = [e.strip() for e in args.extensions.split(",") if e.strip()]
    encoders = dict(_split_binding(e) for e in args.enc if ":" in e)
    encoders = {k: v for k, v in encoders.items() if k}

    providers = []
    for w in args.wordlist:
        path, keyword = _split_binding(w)
        if keyword and sniper:
            errs.add(ConfigurationError("sniper mode does not support wordlist keywords"))
            continue
        keyword = keyword or DEFAULT_KEYWORD
        try:
            providers.append(Wordlist(path, keyword=keyword, template=template,
                                      encoders=encoders.get(keyword, ""),
                                      ignore_comments=args.ic, extensions=exts,
                                      dirsearch_compat=args.dirsearch))
        except (OSError, FuzzError) as exc:
            errs.add(exc)
    for c in args.input_cmd:
        cmd, keyword = _split_binding(c)
        if keyword and sniper:
            errs.add(ConfigurationError("sniper mode does not support command keywords"))
            continue
        keyword = keyword or DEFAULT_KEYWORD
        try:
            providers.append(Command(cmd, keyword=keyword, template=template,
                                     encoders=encoders.get(keyword, ""),
                                     count=args.input_num, shell=args.input_shell))
        except FuzzError as exc:
            errs.add(exc)

    method, url, headers, data = "", args.url, {}, args.data.encode()
    if args.request:
        try:
            raw = RawRequest(args.request, proto=args.request_proto)
            raw.parse()
            method, headers = raw.method, dict(raw.headers)
            url = args.url or raw.url
            data = data or raw.body
        except (OSError, ValueError) as exc:
            errs.add(ConfigurationError(f"Could not parse raw request: {exc}"))
    for h in args.header:
        k, sep, v = h.partition(":")
        if not sep:
            errs.add(ConfigurationError("Header needs to have a value. ':' should be used as a separator"))
            continue
        headers[k.strip()] = v.strip()
    if args.cookie:
        headers["Cookie"] = "; ".join(args.cookie)
    method = args.method or method or "GET"
    if data and method == "GET" and not args.request:
        method = "POST"

    try:
        delay = Delay.parse(args.delay)
    except FuzzError as exc:
        errs.add(exc)
        delay = Delay()
    try:
        ecr = [int(c) for c in args.ecr.split(",") if c.strip()]
    except ValueError:
        errs.add(ConfigurationError(f"Invalid status code list for --ecr: {args.ecr}"))
        ecr = []
    errs.raise_if_any()

    matchers = [(k, getattr(args, f"m_{k}")) for _, k in _RULE_FLAGS if getattr(args, f"m_{k}")]
    filters = [(k, getattr(args, f"f_{k}")) for _, k in _RULE_FLAGS if getattr(args, f"f_{k}")]
    return JobSpec(
        url=url, providers=providers, method=method, headers=headers, data=data,
        input_mode=args.mode, threads=args.threads, delay=delay, rate=args.rate,
        max_time=args.maxtime, max_time_job=args.maxtime_job,
        stop_on_all=args.sa, stop_on_errors=args.se, error_threshold=args.se_threshold,
        stop_on_403=args.sf, forbidden_threshold=args.sf_threshold,
        matchers=matchers, filters=filters,
        matcher_mode=args.mmode, filter_mode=args.fmode,
        auto_calibration=args.ac or args.ach or bool(args.acs) or bool(args.acc),
        calibration_per_host=args.ach,
        calibration_strategies=args.acs or ["basic"],
        calibration_strings=args.acc,
        recursion=args.recursion, recursion_depth=args.recursion_depth,
        recursion_strategy=args.recursion_strategy, recursion_exclude_status=ecr,
    )


def main():
    args = build_parser().parse_args()
    log = Log(verbose=-1 if args.silent else args.verbose)

    try:
        spec = spec_from_args(args)
        executor = HttpxExecutor(proxy=args.proxy, timeout=args.timeout,
                                 follow_redirects=args.follow_redirects,
                                 http2=args.http2, ignore_body=args.ignore_body,
                                 logger=log)
        replay = HttpxExecutor(proxy=args.replay_proxy, timeout=args.timeout,
                               follow_redirects=args.follow_redirects,
                               http2=args.http2) if args.replay_proxy else None
        sink = BufferedSink(ConsoleSink(log), logger=log)
        engine = Engine(spec, executor, sinks=[sink], replay_executor=replay, logger=log)
    except FuzzError as exc:
        log.fail(f"Encountered error(s):\n{exc}")
        sys.exit(1)

    runner = threading.Thread(target=engine.run, name="webfuzz-engine")
    runner.start()
    try:
        while runner.is_alive():
            runner.join(0.5)
    except KeyboardInterrupt:
        log.warn("Interrupted, waiting for in-flight requests")
        engine.cancel()
        runner.join()
    finally:
        engine.close()
        sink.close()
        executor.close()
        if replay:
            replay.close()


if __name__ == "__main__":
    main()
