# fatimacmd

Console tools for operating a Fatima package installation on a host, plus
helpers for reading the responses of the package's management servers and
for preparing deployment archives. The commands work on the installation
directory named by the `FATIMA_HOME` environment variable.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Commands

### lcproc — process revisions

```
lcproc mypgm version          # list the revisions of mypgm, marking the current one with [O]
lcproc mypgm version R017     # point mypgm at revision R017 (asks y/n first)
lcproc mypgm dup mypgm2       # duplicate mypgm into a new process mypgm2
```

Revisions live in `app/revision/<process>/<time>_R<number>` and the
application link `app/<process>` points at one of them. Each listed revision
shows its directory time and, when `deployment.json` is present, the build
user, git branch, commit and the first line of the commit message.

`jupiter`, `juno` and `saturn` are refused. A revision switch is refused while
the pid in `app/<process>/proc/<process>.pid` still shows up in `ps`.
`dup` copies the executable, files starting with the process name and
configuration-like files (`.properties`, `.xml`, `.json`, `.yaml`, `.yml`,
`.sh`, …) into a fresh `R001` revision and links it; the new process still
has to be added to the package configuration by hand.

### lcha / lcps — package status

```
lcha                  # show ACTIVE / STANDBY
lcha set active
lcha set standby

lcps                  # show PRIMARY / SECONDARY
lcps set primary
lcps set secondary
```

The values are kept as `1` or `2` in `package/cfm/ha/system.ha` and
`package/cfm/ha/system.ps` under `FATIMA_HOME`; the file must already exist.

### lcslack — Slack notifications

```
lcslack               # show every webhook section
lcslack true          # turn every section on
lcslack false         # turn every section off
lcslack alarm true    # turn one section on or off
lcslack event false
```

The settings live in `data/saturn/webhook.slack` under `FATIMA_HOME`.

### lcappclear — clean the app directory

```
lcappclear
```

For every symbolic link in `app/`, removes the sibling revision directories
of the revision it points at, then deletes `*.backup` and `*.old` entries
below `app/`.

### roupdate — update the package tools

```
roupdate all          # update tool binaries and opm processes
roupdate bin          # update tool binaries only
roupdate opm          # update opm processes only
roupdate -u URL all   # use a specific packaging archive
```

The archive is fetched with `wget` and unpacked with `gzip`/`tar` in a
temporary directory. `bin` copies the tools into `$FATIMA_HOME/bin`; a binary
that is busy is copied to the system temp directory instead and a `cp`
command is printed for moving it. `opm` reads
`$FATIMA_HOME/conf/fatima-package.yaml`, stops the opm group
(`lcslack false`, `stopro -y`), replaces the `jupiter`, `juno` and `saturn`
binaries of that group and starts them again (`startro -y`,
`lcslack true`).

### startro / stopro — opm programs

```
startro               # start jupiter, juno and saturn (asks first)
startro -y            # start without asking
stopro                # send SIGTERM to them (asks first)
stopro -y
```

## Library use

```python
from fatimacmd.cipher import aes256_encode, aes256_decode
from fatimacmd.values import byte_size, to_bytes

byte_size(1536)                         # '1.5K'
to_bytes("2M")                          # 2097152
aes256_decode(aes256_encode("admin"))   # 'admin'
```

`cipher` uses a fixed key and IV built into the module, so it obscures values
rather than protecting them.

- `fatimacmd.values` — tolerant getters for decoded JSON (`get_string`,
  `get_int`, `get_list`, …), HA/PS labels and byte quantities
  (`byte_size`, `to_bytes`, `to_megabytes`, `ByteQuantityError`).
- `fatimacmd.response` — `PackageInfo`, summary/system message lookups,
  dotted-path lookup with `get_key_in_map`, and `print_preface` /
  `print_table` for console output.
- `fatimacmd.ropack` — `parse_ropack` reads a package deployment listing into
  `RopackResp`; `SummaryResp` finds hosts by group, name or endpoint address.
- `fatimacmd.junodata` — process rows, log levels and cron jobs
  (`parse_cron_commands`) from server responses.
- `fatimacmd.artifact` — `find_platform` picks the target platform from a
  deployment listing; `reform_artifact` rebuilds a `far` archive holding only
  that platform's binaries and records the deploying user in
  `deployment.json`.
- `fatimacmd.pathutil` — `ensure_directory`, `check_file_exist`,
  `remove_last_slash`.

## What this package does not do

It has no HTTP client for the package's management servers: it does not log
in, list or start/stop processes remotely, change log levels, rerun cron jobs,
upload `far` archives or read deployment history. The response models and the
archive preparation above are there for such a client, but no command in this
package sends the requests.