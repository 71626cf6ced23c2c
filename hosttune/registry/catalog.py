"""
Static declarative parameter table.

Workstation tuning for large-model workloads: memory, block I/O, ZFS, network
buffers, scheduler, GPU clocks/modes and CPU idle states.

Ids, paths and values may contain placeholders expanded by the registry:
    {device}     block device name (one entry per configured device)
    {cpu}        CPU index (one entry per CPU x C-state)
    {state}      C-state index
    {pool}       ZFS pool name
    {gpu_clock}  GPU graphics clock to lock, in MHz

Keys per entry:
    category      Category value
    kind          sysctl | sysfs | zpool | nvidia-smi | clock-lock | vboost
    encoding      integer | enum | pair
    desired       value written by apply
    default       shipped OS default written by revert-to-default
    volatility    ephemeral | persistent-via-os | self-persistent
    persistence   none | sysctl | udev | service | modprobe
    optional      target may legitimately be absent on this host
    expand        block_device | cpu_cstate (optional)
    pre_write     value written just before the target value (optional)
"""

PARAMETER_TABLE = {
    # =========================================================================
    # MEMORY
    # =========================================================================

    "mem.swappiness": {
        "category": "memory",
        "kind": "sysctl",
        "key": "vm.swappiness",
        "encoding": "integer",
        "desired": 10,
        "default": 60,
        "volatility": "persistent-via-os",
        "persistence": "sysctl",
        "description": "Swap aggressiveness; keep large resident sets in RAM",
    },
    "mem.thp.enabled": {
        "category": "memory",
        "kind": "sysfs",
        "path": "/sys/kernel/mm/transparent_hugepage/enabled",
        "encoding": "enum",
        "desired": "always",
        "default": "madvise",
        "volatility": "ephemeral",
        "persistence": "service",
        "description": "Transparent hugepages policy",
    },
    "mem.thp.defrag": {
        "category": "memory",
        "kind": "sysfs",
        "path": "/sys/kernel/mm/transparent_hugepage/defrag",
        "encoding": "enum",
        "desired": "always",
        "default": "madvise",
        "volatility": "ephemeral",
        "persistence": "service",
        "description": "Transparent hugepages defrag policy",
    },
    "mem.vfs_cache_pressure": {
        "category": "memory",
        "kind": "sysctl",
        "key": "vm.vfs_cache_pressure",
        "encoding": "integer",
        "desired": 50,
        "default": 100,
        "volatility": "persistent-via-os",
        "persistence": "sysctl",
        "description": "Dentry/inode cache reclaim pressure (lower keeps more file cache)",
    },
    "mem.dirty_ratio": {
        "category": "memory",
        "kind": "sysctl",
        "key": "vm.dirty_ratio",
        "encoding": "integer",
        "desired": 40,
        "default": 20,
        "volatility": "persistent-via-os",
        "persistence": "sysctl",
        "description": "Percent of memory dirty before writers block",
    },
    "mem.dirty_background_ratio": {
        "category": "memory",
        "kind": "sysctl",
        "key": "vm.dirty_background_ratio",
        "encoding": "integer",
        "desired": 10,
        "default": 10,
        "volatility": "persistent-via-os",
        "persistence": "sysctl",
        "description": "Percent of memory dirty before background writeback",
    },

    # =========================================================================
    # BLOCK I/O (per device)
    # =========================================================================

    "io.{device}.nr_requests": {
        "category": "io",
        "kind": "sysfs",
        "path": "/sys/block/{device}/queue/nr_requests",
        "encoding": "integer",
        "desired": 256,
        "default": 128,
        "volatility": "ephemeral",
        "persistence": "udev",
        "optional": True,
        "expand": "block_device",
        "udev_attr": "queue/nr_requests",
        "description": "Request queue depth",
    },
    "io.{device}.read_ahead_kb": {
        "category": "io",
        "kind": "sysfs",
        "path": "/sys/block/{device}/queue/read_ahead_kb",
        "encoding": "integer",
        "desired": 4096,
        "default": 128,
        "volatility": "ephemeral",
        "persistence": "udev",
        "optional": True,
        "expand": "block_device",
        "udev_attr": "queue/read_ahead_kb",
        "description": "Read-ahead for sequential model loading",
    },
    "io.{device}.scheduler": {
        "category": "io",
        "kind": "sysfs",
        "path": "/sys/block/{device}/queue/scheduler",
        "encoding": "enum",
        "desired": "none",
        "default": "mq-deadline",
        "volatility": "ephemeral",
        "persistence": "udev",
        "optional": True,
        "expand": "block_device",
        "udev_attr": "queue/scheduler",
        "description": "I/O scheduler (ZFS schedules its own I/O)",
    },

    # =========================================================================
    # ZFS
    # =========================================================================

    "zfs.{pool}.autotrim": {
        "category": "storage-pool",
        "kind": "zpool",
        "pool": "{pool}",
        "prop": "autotrim",
        "encoding": "enum",
        "desired": "on",
        "default": "off",
        "volatility": "self-persistent",
        "persistence": "none",
        "optional": True,
        "description": "Continuous TRIM on pool SSDs",
    },
    "zfs.arc_meta_limit": {
        "category": "storage-pool",
        "kind": "sysfs",
        "path": "/sys/module/zfs/parameters/zfs_arc_meta_limit",
        "encoding": "integer",
        "desired": 8589934592,
        "default": 0,
        "volatility": "ephemeral",
        "persistence": "modprobe",
        "optional": True,
        "module": "zfs",
        "option": "zfs_arc_meta_limit",
        "description": "ARC metadata limit in bytes (0 = automatic)",
    },
    "zfs.prefetch_disable": {
        "category": "storage-pool",
        "kind": "sysfs",
        "path": "/sys/module/zfs/parameters/zfs_prefetch_disable",
        "encoding": "integer",
        "desired": 0,
        "default": 0,
        "pre_write": 1,
        "volatility": "ephemeral",
        "persistence": "modprobe",
        "optional": True,
        "module": "zfs",
        "option": "zfs_prefetch_disable",
        "description": "ZFS prefetch (toggled off then on to re-evaluate)",
    },

    # =========================================================================
    # NETWORK
    # =========================================================================

    "net.rmem_max": {
        "category": "network",
        "kind": "sysctl",
        "key": "net.core.rmem_max",
        "encoding": "integer",
        "desired": 16777216,
        "default": 212992,
        "volatility": "persistent-via-os",
        "persistence": "sysctl",
        "description": "Max socket receive buffer",
    },
    "net.wmem_max": {
        "category": "network",
        "kind": "sysctl",
        "key": "net.core.wmem_max",
        "encoding": "integer",
        "desired": 16777216,
        "default": 212992,
        "volatility": "persistent-via-os",
        "persistence": "sysctl",
        "description": "Max socket send buffer",
    },
    "net.rmem_default": {
        "category": "network",
        "kind": "sysctl",
        "key": "net.core.rmem_default",
        "encoding": "integer",
        "desired": 1048576,
        "default": 212992,
        "volatility": "persistent-via-os",
        "persistence": "sysctl",
        "description": "Default socket receive buffer",
    },
    "net.wmem_default": {
        "category": "network",
        "kind": "sysctl",
        "key": "net.core.wmem_default",
        "encoding": "integer",
        "desired": 1048576,
        "default": 212992,
        "volatility": "persistent-via-os",
        "persistence": "sysctl",
        "description": "Default socket send buffer",
    },
    "net.netdev_max_backlog": {
        "category": "network",
        "kind": "sysctl",
        "key": "net.core.netdev_max_backlog",
        "encoding": "integer",
        "desired": 5000,
        "default": 1000,
        "volatility": "persistent-via-os",
        "persistence": "sysctl",
        "description": "Max queued input packets per CPU",
    },
    "net.tcp_fastopen": {
        "category": "network",
        "kind": "sysctl",
        "key": "net.ipv4.tcp_fastopen",
        "encoding": "integer",
        "desired": 3,
        "default": 1,
        "volatility": "persistent-via-os",
        "persistence": "sysctl",
        "description": "TCP Fast Open for client and server",
    },
    "net.tcp_slow_start_after_idle": {
        "category": "network",
        "kind": "sysctl",
        "key": "net.ipv4.tcp_slow_start_after_idle",
        "encoding": "integer",
        "desired": 0,
        "default": 1,
        "volatility": "persistent-via-os",
        "persistence": "sysctl",
        "description": "Reset congestion window after idle",
    },

    # =========================================================================
    # SCHEDULER
    # =========================================================================

    "sched.autogroup": {
        "category": "scheduler",
        "kind": "sysctl",
        "key": "kernel.sched_autogroup_enabled",
        "encoding": "integer",
        "desired": 0,
        "default": 1,
        "volatility": "persistent-via-os",
        "persistence": "sysctl",
        "description": "Session autogrouping of tasks",
    },

    # =========================================================================
    # GPU
    # =========================================================================

    "gpu.clock_lock": {
        "category": "accelerator-clock",
        "kind": "clock-lock",
        "encoding": "pair",
        "desired": "{gpu_clock},{gpu_clock}",
        "default": "unlocked",
        "volatility": "ephemeral",
        "persistence": "none",
        "optional": True,
        "no_mechanism_reason": (
            "firmware discards locked clocks on driver reload; a boot-time "
            "re-apply is known not to stick on this device"
        ),
        "description": "Locked graphics clock range (min,max MHz)",
    },
    "gpu.vboost": {
        "category": "accelerator-clock",
        "kind": "vboost",
        "encoding": "integer",
        "desired": 1,
        "default": 0,
        "volatility": "ephemeral",
        "persistence": "service",
        "optional": True,
        "description": "Core clock boost over memory clock",
    },
    "gpu.persistence_mode": {
        "category": "accelerator-mode",
        "kind": "nvidia-smi",
        "field": "persistence_mode",
        "write_flag": "-pm",
        "value_map": {"enabled": "1", "disabled": "0"},
        "encoding": "enum",
        "desired": "enabled",
        "default": "disabled",
        "volatility": "ephemeral",
        "persistence": "service",
        "optional": True,
        "description": "Keep the driver loaded with no clients",
    },
    "gpu.accounting_mode": {
        "category": "accelerator-mode",
        "kind": "nvidia-smi",
        "field": "accounting.mode",
        "write_flag": "-am",
        "value_map": {"enabled": "1", "disabled": "0"},
        "encoding": "enum",
        "desired": "enabled",
        "default": "disabled",
        "volatility": "self-persistent",
        "persistence": "none",
        "optional": True,
        "description": "Per-process GPU accounting",
    },
    "gpu.compute_mode": {
        "category": "accelerator-mode",
        "kind": "nvidia-smi",
        "field": "compute_mode",
        "write_flag": "-c",
        "value_map": {"default": "0", "prohibited": "2", "exclusive_process": "3"},
        "encoding": "enum",
        "desired": "default",
        "default": "default",
        "volatility": "self-persistent",
        "persistence": "none",
        "optional": True,
        "description": "Compute mode (shared; exclusive conflicts with the display server)",
    },

    # =========================================================================
    # CPU IDLE (per CPU x C-state)
    # =========================================================================

    "cpu.cpu{cpu}.state{state}.disable": {
        "category": "cpu-idle",
        "kind": "sysfs",
        "path": "/sys/devices/system/cpu/cpu{cpu}/cpuidle/state{state}/disable",
        "encoding": "integer",
        "desired": 1,
        "default": 0,
        "volatility": "ephemeral",
        "persistence": "service",
        "optional": True,
        "expand": "cpu_cstate",
        "description": "Disable deep C-state (lower wake latency)",
    },
}
