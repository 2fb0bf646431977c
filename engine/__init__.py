"""Engine layer — stateful orchestration around the pure core.

Modules:
    analysis_engine  Thread-pool timeline analysis with cache lookup.
    store            Mutex-guarded slot → PlaybackRecord map.
    tracker          Authoritative playback tracker (commands + snapshots).
    mirror           Presentation mirror that follows snapshots.
"""
