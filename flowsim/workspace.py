import os
import shutil


class Workspace:
    """Context manager running a simulation inside its own directory.

    The directory is created on entry if needed (and emptied first when
    `overwrite` is set) and the previous working directory is restored on
    exit. A workspace of the current directory is a no-op.

    """

    def __init__(self, workspace, overwrite=False):
        self.workspace = workspace
        self.overwrite = overwrite
        self.prev_dir = os.getcwd()

    @property
    def is_curdir(self):
        return os.path.relpath(self.workspace) == os.curdir

    @classmethod
    def from_config(cls, config):
        workspace = config.setdefault(
            'meta.sim.workspace', config.setdefault('sim.workspace', os.curdir)
        )
        overwrite = config.setdefault('sim.workspace.overwrite', False)
        return cls(workspace, overwrite)

    def __enter__(self):
        self.prev_dir = os.getcwd()
        if self.is_curdir:
            return self
        if self.overwrite and os.path.isdir(self.workspace):
            shutil.rmtree(self.workspace)
        os.makedirs(self.workspace, exist_ok=True)
        os.chdir(self.workspace)
        return self

    def __exit__(self, *exc):
        os.chdir(self.prev_dir)
