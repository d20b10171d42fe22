# fusewire

Building blocks for a user-space FUSE file system server.

## Modules

- `fusewire.protocol` has `Protocol`, a FUSE protocol version with `lt`,
  `ge` and feature checks (`has_attr_block_size`, `has_read_write_flags`,
  `has_getattr_flags`, `has_open_non_seekable`, `has_umask`,
  `has_invalidate`). It also has `MIN_PROTOCOL` (7.19) and `MAX_PROTOCOL`
  (7.31).
- `fusewire.flags` has the kernel's bit flags (`GetattrFlags`,
  `SetattrValid`, `OpenFlags`, `OpenResponseFlags`, `InitFlags`,
  `ReleaseFlags`, `ReadFlags`, `WriteFlags`), `Opcode` and `NotifyCode`.
  `flag_string` renders flags as `+`-joined names. `open_flags` converts
  raw open flags and drops O_LARGEFILE on Linux.
- `fusewire.structs` has the kernel's wire structures (`InHeader`,
  `OutHeader`, `Attr`, `EntryOut`, `AttrOut`, `InitIn`, `InitOut`,
  `ReadIn`, `WriteIn`, `Dirent`, ...). Each one has `pack()`, `unpack()`,
  `byte_size()` and `offset_of()`. The module also has the size helpers
  for older protocol versions (`entry_out_size`, `attr_out_size`,
  `mknod_in_size`, `mkdir_in_size`, `create_in_size`, `read_in_size`,
  `write_in_size`, `lk_in_size`). Fields that only macOS has are left out
  of the layout on other platforms.
- `fusewire.ops` has `UnknownOp`, `InterruptOp` and `InitOp`.
- `fusewire.freelist` has `Freelist`, a last-in, first-out pool of
  reusable objects.
- `fusewire.in_message` has `InMessage`. It fills its buffer from a single
  read and checks the header's length. The bytes after the header can then
  be taken with `consume` or `consume_bytes`.
- `fusewire.out_message` has `OutMessage`. It builds a reply as an
  `OutHeader` followed by segments (`append`, `append_string`, `grow`,
  `shrink_to`). Its `sglist` property gives those segments, ready for a
  vectored write.
- `fusewire.mount_config` has `MountConfig` and the conversion of its
  settings into mount-helper options (`to_map`, `to_options_string`,
  `map_to_options_string`, `escape_options_key`).
- `fusewire.fusermount` has `fusermount()`. It runs a mount helper and
  receives the FUSE device from it over a Unix socket. It raises
  `FusermountError` on failure.
- `fusewire.mount_linux` has `begin_mount()`, which mounts through
  `fusermount3` or `fusermount`. It also has `find_fusermount()`, and
  `mount_flags()` and `direct_mount_arguments()`, which compute mount(2)
  flags and arguments.
- `fusewire.mount_darwin` has `begin_mount()` for macFUSE or osxfuse
  installations. It also has `open_osxfuse_device()`, `load_osxfuse()` and
  `convert_mount_args()`.

## Install

```
pip install fusewire
```

## Building a reply

```python
from fusewire.out_message import OutMessage

msg = OutMessage()
msg.reset()
msg.append_string("taco")
header = msg.header()
header.unique = 42
header.len = len(msg)
segments = msg.sglist  # encoded header first, then b"taco"
```

## Mounting and reading requests on Linux

```python
from fusewire.in_message import InMessage
from fusewire.mount_config import MountConfig
from fusewire.mount_linux import begin_mount

device, ready = begin_mount("/mnt/point", MountConfig(fs_name="myfs"))
ready.result()

request = InMessage()
request.read_from(device)
print(request.header().opcode, len(request))
```

On macOS, `fusewire.mount_darwin.begin_mount` has the same signature. The
future it returns completes once the mount helper has exited, and the device
may need to be served for that to happen.

## What the package does not do

- There is no single call that mounts a directory and serves it.
- There is no loop that reads requests and dispatches them as file system
  operations.
- Nothing waits for unmounting or unmounts a file system. The caller reads
  requests from the device, answers them with `OutMessage`, and unmounts
  by other means.
- `direct_mount_arguments` only computes the mount(2) arguments. Mounting
  always goes through the helper program.

Mounting needs `/dev/fuse` and a `fusermount3` or `fusermount` helper on
Linux, or macFUSE or osxfuse on macOS.

## Tests

```
pip install fusewire[test]
pytest
```