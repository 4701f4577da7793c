# miclaw

A set of tools for a language-model agent, and a small webhook receiver
that feeds events into it. It has no dependencies outside the standard
library.

Every tool is a `Tool` (in `miclaw.tools.tool`) with a `name`, a
`description` and a `JSONSchema` for its parameters. `to_provider_defs`
turns a list of tools into `ToolDef` entries whose `parameters` are JSON
text, ready to be offered to a model provider. A call is run with
`Tool.run(call, cancel=None)`, where `call` is a `ToolCall` whose
`parameters` may be JSON text, bytes or a dict, and `cancel` is an optional
`threading.Event`.

```python
from miclaw.tools.read import read_tool
from miclaw.tools.tool import ToolCall

result = read_tool().run(ToolCall(parameters={"path": "notes.txt", "limit": 20}))
print(result.is_error, result.content)
```

Most tools report failures as a `ToolResult` with `is_error=True`. The
`write`, `edit` and `apply_patch` tools instead raise `ToolError`.

## Tools

| Name            | Built by                                      | What it does                                                   |
|-----------------|-----------------------------------------------|----------------------------------------------------------------|
| `read`          | `miclaw.tools.read.read_tool`                 | Numbered lines with `offset`/`limit` paging; output capped at 512KB; binary files refused |
| `write`         | `miclaw.tools.write.write_tool`               | Write a file, creating parent directories unless `create_dirs` is false |
| `edit`          | `miclaw.tools.edit.edit_tool`                 | Replace a unique occurrence of `old_text`, or every one with `replace_all` |
| `apply_patch`   | `miclaw.tools.patch.patch_tool`               | Apply unified diff hunks, searching up to three lines either side of the expected place |
| `grep`          | `miclaw.tools.grep.grep_tool`                 | Regex search with `context_lines`, `include`/`exclude` globs and the root `.gitignore` |
| `glob`          | `miclaw.tools.glob_search.glob_tool`          | Files matching a glob, sorted, at most 1000                     |
| `ls`            | `miclaw.tools.ls.ls_tool`                     | Flat listing at depth 1, a tree up to depth 5                  |
| `exec`          | `miclaw.tools.execute.exec_tool`              | Run `sh -c` in the foreground (timeout 1–1800 s, default 1800) or in the background |
| `process`       | `miclaw.tools.process.process_tool`           | `status`, `poll`, `input` or `signal` (SIGTERM, SIGINT, SIGKILL) for background processes |
| `cron`          | `miclaw.tools.cron.cron_tool`                 | `list`, `add` and `remove` jobs on a `Scheduler`               |
| `message`       | `miclaw.tools.message.message_tool`           | Send to a `signal:` target through a callback you supply       |
| `sleep`         | `miclaw.tools.tool.sleep_tool`                | Mark work as done until new input arrives                      |
| `memory_search` | `miclaw.tools.memory_search.memory_search_tool` | Hybrid search: 0.7 × vector score + 0.3 × full-text score     |
| `memory_get`    | `miclaw.tools.memory_get.memory_get_tool`     | A chunk by `path:index` id, with its previous and next chunks  |

`main_agent_tools(MainToolDeps(...))` in `miclaw.tools.registry` builds all
fourteen; `bridge_tools()` builds the file-system and shell subset, whose
names `bridgeable_tool_names()` returns.

Foreground `exec` output is cut at 100,000 characters and ends with
`[output truncated]`; on timeout or cancellation the process group gets
SIGTERM, then SIGKILL after five seconds. Background processes are tracked
by the shared `ProcManager` in `miclaw.tools.execute.process_manager`,
which keeps the last 100,000 bytes of each one's output.

## Cron expressions

Five fields (minute, hour, day of month, month, day of week with Sunday
as 0), each a `*`, a number, a range `a-b`, a step `*/n`, `a/n` or `a-b/n`,
or a comma-separated list of these. Times are matched in UTC.

```python
from datetime import datetime, timezone

from miclaw.tools.cron_expr import parse_cron_expr

expr = parse_cron_expr("*/15 9-17 * * 1-5")
now = datetime(2026, 2, 23, 9, 7, tzinfo=timezone.utc)
print(expr.matches(now))      # False
print(expr.next_after(now))   # 2026-02-23 09:15:00+00:00
```

A `Scheduler(db_path)` in `miclaw.tools.scheduler` keeps jobs in an SQLite
file and reloads them when opened again. `start(inject)` checks for due
jobs at once and then every `tick` seconds (60 by default) on a background
thread, calling `inject("cron", prompt)` for each; `stop()` ends the loop
and `close()` closes the database. It can also be used as a context
manager.

## Path patterns

```python
from miclaw.tools.path_match import match_path_pattern

match_path_pattern("*.txt", "sub/notes.txt")       # True: matched on the base name
match_path_pattern("**/*.txt", "a/b/notes.txt")    # True
match_path_pattern("src/*.py", "src/pkg/mod.py")   # False
```

## Webhooks

`WebhookServer(WebhookConfig(listen, hooks), enqueue)` in
`miclaw.webhook.server` serves `GET /health` (`{"status":"ok"}`) and one
POST endpoint per `WebhookDef(id, path, secret, format)`. Other methods on
a hook get 405, unknown paths 404. A hook with a secret accepts only
requests whose `X-Webhook-Signature` header is `sha256=` followed by the
hex HMAC-SHA256 of the body, and answers 401 otherwise. Accepted bodies
are passed to `enqueue("webhook:<id>", body_text, {"id": id})` and answered
with 202.

```python
from miclaw.webhook.server import WebhookConfig, WebhookDef, WebhookServer

def enqueue(source, content, metadata):
    print(source, content)

cfg = WebhookConfig(listen="127.0.0.1:0", hooks=[WebhookDef(id="ci", path="/hook", secret="secret")])
with WebhookServer(cfg, enqueue) as server:
    print(server.address)   # the bound (host, port)
```

`start()` serves on a background thread and returns the bound address,
`serve(stop_event)` blocks until the event is set, and `stop()` shuts the
server down. `validate_hmac(body, signature, secret)` in
`miclaw.webhook.signature` checks a signature on its own.

## What this package does not do

- It has no command-line program and no agent loop: nothing here talks to
  a model. You build the tools, send their definitions to a provider and
  run the calls yourself.
- It has no memory store or embedding client. `memory_search_tool` and
  `memory_get_tool` take any objects offering `search_vector`,
  `search_fts` and `get_chunk`, and `embed`, as their module docstrings
  describe.
- It sends no messages itself: `message_tool` hands them to your callback,
  and accepts only targets on the `signal` channel.
- Commands run directly through `sh` with no sandboxing.

## Platform

The `exec` and `process` tools start commands in their own process group
and signal the whole group, so they need a POSIX system.