import os, sys


def resource_path(rel_path: str) -> str:
    """
    Return an absolute path for data files (model weights) both in dev and in PyInstaller.
    Search order:
      1) _MEIPASS (PyInstaller temp unpack dir)
      2) POSEPOINTER_HOME, if set
      3) Current Working Directory
      4) Project root (three levels up from this utils/ folder)
    """
    # normalize to forward slashes and strip leading slashes
    rel_path = rel_path.replace("\\", "/").lstrip("/")

    # 1) PyInstaller extraction dir
    meipass = getattr(sys, "_MEIPASS", None)
    if meipass:
        p = os.path.join(meipass, rel_path)
        if os.path.exists(p):
            return p

    # 2) explicit override
    home = os.environ.get("POSEPOINTER_HOME")
    if home:
        p = os.path.join(home, rel_path)
        if os.path.exists(p):
            return p

    # 3) CWD
    p = os.path.join(os.getcwd(), rel_path)
    if os.path.exists(p):
        return p

    # 4) project root (utils/../../..)
    here = os.path.abspath(os.path.dirname(__file__))
    proj_root = os.path.abspath(os.path.join(here, "..", "..", ".."))
    p4 = os.path.join(proj_root, rel_path)
    if os.path.exists(p4):
        return p4

    # last resort: return project-root guess (helps error messages)
    return p4
