import re, zipfile, sys, subprocess, pathlib
import pytest

from virtualcorpus import PACKAGE_VERSION


@pytest.mark.build
def test_build_wheel_and_sdist(tmp_path):
    """Build sdist & wheel; validate filenames and wheel METADATA without installing.
    Skips if 'build' module absent to avoid hard dependency in minimal env.
    """
    build = pytest.importorskip('build')  # noqa: F841
    project_root = pathlib.Path(__file__).resolve().parents[1]
    dist_dir = tmp_path / 'dist'
    dist_dir.mkdir()
    cmd = [sys.executable, '-m', 'build', '--wheel', '--sdist', '--outdir', str(dist_dir)]
    proc = subprocess.run(cmd, capture_output=True, text=True, cwd=project_root)
    assert proc.returncode == 0, f"build failed: {proc.stdout}\n{proc.stderr}"
    wheels = list(dist_dir.glob('virtualcorpus-*-py3-none-any.whl'))
    assert wheels, f"No wheel produced. Contents: {[p.name for p in dist_dir.iterdir()]}"
    wheel = wheels[0]
    assert f"-{PACKAGE_VERSION}-" in wheel.name, f"Wheel filename version mismatch: {wheel.name} vs {PACKAGE_VERSION}"
    with zipfile.ZipFile(wheel, 'r') as zf:
        meta_path = [n for n in zf.namelist() if n.endswith('METADATA')][0]
        meta = zf.read(meta_path).decode('utf-8', errors='replace')
        assert not any(n.startswith('tests/') for n in zf.namelist())
    m = re.search(r'^Version: (.+)$', meta, re.MULTILINE)
    assert m and m.group(1).strip() == PACKAGE_VERSION
    # Only lxml at runtime; pytest stays in the dev extra
    runtime_deps = [line for line in meta.split('\n') if line.startswith('Requires-Dist:') and 'extra ==' not in line]
    assert len(runtime_deps) == 1 and 'lxml' in runtime_deps[0], runtime_deps
    assert list(dist_dir.glob('virtualcorpus-*.tar.gz')), 'No sdist produced'
