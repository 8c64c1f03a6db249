"""
Format command construction.

Maps every FilesystemKind to its formatting tool and translates
FormatOptions into that tool's argument syntax. Options a tool cannot
honour are dropped and reported as warnings.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path, PurePosixPath
from typing import Callable

from blockutils.core.errors import AmbiguousOrUnknownFilesystem
from blockutils.core.logging import get_logger
from blockutils.core.models import FilesystemKind, FormatOptions

logger = get_logger(__name__)

XFS_MIN_BLOCK_SIZE = 512
XFS_MAX_BLOCK_SIZE = 65536

# FormatOptions fields every tool receives through its ToolSpec
GENERIC_OPTIONS = frozenset({"force", "block_size", "label", "extra_options"})


@dataclass(frozen=True)
class ToolSpec:
    """Canonical flags of one formatting tool."""

    executable: str
    subcommand: tuple[str, ...] = ()
    force_args: tuple[str, ...] = ()
    label_flag: str | None = None
    block_size_flag: str | None = None
    fixed_args: tuple[str, ...] = ()
    tunables: frozenset[str] = frozenset()


EXT_TUNABLES = frozenset({"inode_size", "reserved_blocks_percentage", "stride", "stripe_width"})

TOOL_SPECS: dict[FilesystemKind, ToolSpec] = {
    FilesystemKind.EXT2: ToolSpec(
        "mkfs.ext2", force_args=("-F",), label_flag="-L", block_size_flag="-b",
        tunables=EXT_TUNABLES,
    ),
    FilesystemKind.EXT3: ToolSpec(
        "mkfs.ext3", force_args=("-F",), label_flag="-L", block_size_flag="-b",
        tunables=EXT_TUNABLES,
    ),
    FilesystemKind.EXT4: ToolSpec(
        "mkfs.ext4", force_args=("-F",), label_flag="-L", block_size_flag="-b",
        tunables=EXT_TUNABLES,
    ),
    FilesystemKind.XFS: ToolSpec(
        "mkfs.xfs", force_args=("-f",), label_flag="-L", block_size_flag="-b",
        tunables=frozenset({"inode_size", "stripe_unit", "stripe_width", "agcount"}),
    ),
    FilesystemKind.BTRFS: ToolSpec(
        "mkfs.btrfs", force_args=("-f",), label_flag="-L", block_size_flag="-s",
        tunables=frozenset({"metadata_profile", "node_size"}),
    ),
    FilesystemKind.VFAT: ToolSpec(
        "mkfs.vfat", force_args=("-I",), label_flag="-n", block_size_flag="-S",
    ),
    FilesystemKind.NTFS: ToolSpec(
        "mkfs.ntfs", force_args=("-F",), label_flag="-L", block_size_flag="-c",
        fixed_args=("-Q",),
    ),
    FilesystemKind.SWAP: ToolSpec("mkswap", force_args=("-f",), label_flag="-L"),
    FilesystemKind.ZFS: ToolSpec(
        "zpool", subcommand=("create",), force_args=("-f",),
        tunables=frozenset({"compression"}),
    ),
    FilesystemKind.LUKS_ENCRYPTED: ToolSpec(
        "cryptsetup", subcommand=("luksFormat",), force_args=("--batch-mode",),
        label_flag="--label", block_size_flag="--sector-size",
        tunables=frozenset({"key_file"}),
    ),
    FilesystemKind.LVM_MEMBER: ToolSpec("pvcreate", force_args=("-ff", "--yes")),
}


@dataclass
class BuiltCommand:
    """A fully translated format command."""

    executable: str
    args: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.args]


class CommandBuilder:
    """Translates a kind plus FormatOptions into a tool invocation."""

    def __init__(
        self,
        zfs_mount_root: Path | str = Path("/mnt"),
        resolve_tool: Callable[[str], str] | None = None,
    ) -> None:
        self.zfs_mount_root = PurePosixPath(zfs_mount_root)
        self.resolve_tool = resolve_tool or (lambda name: name)
        self._tunable_builders: dict[FilesystemKind, Callable[..., list[str]]] = {
            FilesystemKind.EXT2: self._ext_tunables,
            FilesystemKind.EXT3: self._ext_tunables,
            FilesystemKind.EXT4: self._ext_tunables,
            FilesystemKind.XFS: self._xfs_tunables,
            FilesystemKind.BTRFS: self._btrfs_tunables,
            FilesystemKind.LUKS_ENCRYPTED: self._luks_tunables,
        }

    def build(
        self,
        device_path: str,
        kind: FilesystemKind,
        options: FormatOptions,
    ) -> BuiltCommand:
        """Build the command for one device. Raises AmbiguousOrUnknownFilesystem."""
        spec = TOOL_SPECS.get(kind)
        if spec is None:
            raise AmbiguousOrUnknownFilesystem(
                f"No formatting tool for filesystem '{kind.value}'",
                device_path,
            )

        if kind is FilesystemKind.ZFS:
            return self._build_zpool(device_path, spec, options)

        built = BuiltCommand(executable=self.resolve_tool(spec.executable))
        args = built.args
        args.extend(spec.subcommand)
        args.extend(spec.fixed_args)

        if options.force:
            args.extend(spec.force_args)

        if options.label is not None:
            if spec.label_flag:
                args.extend([spec.label_flag, options.label])
            else:
                self._unsupported(built, spec, "label")

        if options.block_size is not None:
            if spec.block_size_flag:
                args.extend(
                    [spec.block_size_flag, self._block_size_value(kind, options.block_size, built)]
                )
            else:
                self._unsupported(built, spec, "block_size")

        tunable_builder = self._tunable_builders.get(kind)
        if tunable_builder is not None:
            args.extend(tunable_builder(options, built))
        self._warn_unsupported_tunables(built, spec, options)

        args.extend(options.extra_options)
        args.append(device_path)
        return built

    def _block_size_value(self, kind: FilesystemKind, block_size: int, built: BuiltCommand) -> str:
        if kind is not FilesystemKind.XFS:
            return str(block_size)

        # mkfs.xfs only accepts 512 B to 64 KiB
        if block_size < XFS_MIN_BLOCK_SIZE:
            self._warn(built, f"xfs block size must be at least {XFS_MIN_BLOCK_SIZE} bytes; using {XFS_MIN_BLOCK_SIZE}")
            block_size = XFS_MIN_BLOCK_SIZE
        elif block_size > XFS_MAX_BLOCK_SIZE:
            self._warn(built, f"xfs block size must be at most {XFS_MAX_BLOCK_SIZE} bytes; using {XFS_MAX_BLOCK_SIZE}")
            block_size = XFS_MAX_BLOCK_SIZE
        return f"size={block_size}"

    def _ext_tunables(self, options: FormatOptions, built: BuiltCommand) -> list[str]:
        args: list[str] = []
        if options.inode_size is not None:
            args.extend(["-I", str(options.inode_size)])
        if options.reserved_blocks_percentage is not None:
            args.extend(["-m", str(options.reserved_blocks_percentage)])

        extended = []
        if options.stride is not None:
            extended.append(f"stride={options.stride}")
        if options.stripe_width is not None:
            extended.append(f"stripe_width={options.stripe_width}")
        if extended:
            args.extend(["-E", ",".join(extended)])
        return args

    def _xfs_tunables(self, options: FormatOptions, built: BuiltCommand) -> list[str]:
        args: list[str] = []
        if options.inode_size is not None:
            args.extend(["-i", f"size={options.inode_size}"])

        data_section = []
        if options.stripe_unit is not None and options.stripe_width is not None:
            data_section.append(f"su={options.stripe_unit}")
            data_section.append(f"sw={options.stripe_width}")
        elif options.stripe_unit is not None or options.stripe_width is not None:
            self._warn(built, "xfs stripe_unit and stripe_width must be given together; ignored")
        if options.agcount is not None:
            data_section.append(f"agcount={options.agcount}")
        if data_section:
            args.extend(["-d", ",".join(data_section)])
        return args

    def _btrfs_tunables(self, options: FormatOptions, built: BuiltCommand) -> list[str]:
        args: list[str] = []
        if options.metadata_profile is not None:
            args.extend(["-m", options.metadata_profile.value])
        if options.node_size is not None:
            args.extend(["-n", str(options.node_size)])
        return args

    def _luks_tunables(self, options: FormatOptions, built: BuiltCommand) -> list[str]:
        if options.key_file is not None:
            return ["--key-file", options.key_file]
        if not any(opt in ("--key-file", "-d") or opt.startswith("--key-file=") for opt in options.extra_options):
            # stdin is closed, so there is no passphrase prompt to fall back on
            self._warn(built, "cryptsetup luksFormat has no key file; set key_file or it will fail")
        return []

    def _build_zpool(
        self, device_path: str, spec: ToolSpec, options: FormatOptions
    ) -> BuiltCommand:
        """zpool create [-f] -m <root>/<pool> -O ... <pool> <device>"""
        built = BuiltCommand(executable=self.resolve_tool(spec.executable))
        args = built.args
        args.extend(spec.subcommand)
        if options.force:
            args.extend(spec.force_args)

        pool = options.label or PurePosixPath(device_path).name
        args.extend(["-m", str(self.zfs_mount_root / pool)])

        if options.block_size is not None:
            args.extend(["-O", f"recordsize={options.block_size}"])
        if options.compression:
            args.extend(["-O", "compression=on"])
        args.extend(["-O", "acltype=posixacl", "-O", "atime=off"])

        self._warn_unsupported_tunables(built, spec, options)
        args.extend(options.extra_options)
        args.extend([pool, device_path])
        return built

    def _warn_unsupported_tunables(
        self, built: BuiltCommand, spec: ToolSpec, options: FormatOptions
    ) -> None:
        for option_field in fields(options):
            name = option_field.name
            if name in GENERIC_OPTIONS or name in spec.tunables:
                continue
            if getattr(options, name) is not None:
                self._unsupported(built, spec, name)

    def _unsupported(self, built: BuiltCommand, spec: ToolSpec, option: str) -> None:
        self._warn(built, f"{option} is not supported by {spec.executable}; ignored")

    def _warn(self, built: BuiltCommand, message: str) -> None:
        logger.warning("Format option dropped", executable=built.executable, detail=message)
        built.warnings.append(message)
