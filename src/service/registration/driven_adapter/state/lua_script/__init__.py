from functools import cache
from pathlib import Path


LUA_SCRIPT_DIR = Path(__file__).parent


@cache
def load_lua_script(*, script_name: str) -> str:
    return (LUA_SCRIPT_DIR / f'{script_name}.lua').read_text()
