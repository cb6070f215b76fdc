"""
Tests for file collection and line reading
"""
from codeaudit.core.files import collect_files, read_content, read_lines, to_relative


class TestWalk:

    def test_filters_and_order(self, make_project):
        root = make_project({
            'b.py': 'x = 1\n',
            'a/x.py': 'y = 2\n',
            '.github/workflows/ci.yml': 'jobs: {}\n',
            '.hidden/secret.py': 'z = 3\n',
            'node_modules/lib/index.js': 'module.exports = 1\n',
            'logo.png': 'not really a png',
            'yarn.lock': '# lockfile\n',
        })
        paths = [f.relative_path for f in collect_files(root)]
        assert paths == ['b.py', '.github/workflows/ci.yml', 'a/x.py']

    def test_dotenv_files_are_collected(self, make_project):
        root = make_project({'.env': 'KEY=value\n', '.env.local': 'KEY=value\n'})
        names = {f.relative_path for f in collect_files(root)}
        assert names == {'.env', '.env.local'}

    def test_file_info_fields(self, make_project):
        root = make_project({'src/Main.PY': 'print(1)\n'})
        [info] = collect_files(root)
        assert info.relative_path == 'src/Main.PY'
        assert info.ext == '.py'
        assert info.name == 'Main.PY'
        assert info.size == len('print(1)\n')

    def test_max_files(self, make_project):
        root = make_project({'a.py': '', 'b.py': '', 'c.py': ''})
        assert len(collect_files(root, max_files=2)) == 2

    def test_max_depth(self, make_project):
        root = make_project({'a/x.py': '', 'a/b/y.py': ''})
        paths = [f.relative_path for f in collect_files(root, max_depth=1)]
        assert paths == ['a/x.py']

    def test_extra_ignore_dirs(self, make_project):
        root = make_project({'generated/out.js': '', 'src/in.js': ''})
        paths = [f.relative_path for f in collect_files(root, ignore_dirs=['generated'])]
        assert paths == ['src/in.js']

    def test_empty_directory(self, tmp_path):
        assert collect_files(tmp_path) == []


class TestReading:

    def test_crlf_and_trailing_newline(self, tmp_path):
        path = tmp_path / 'win.txt'
        path.write_bytes(b'first\r\nsecond\r\n')
        assert read_lines(path) == ['first', 'second']

    def test_no_trailing_newline(self, tmp_path):
        path = tmp_path / 'f.txt'
        path.write_bytes(b'a\nb')
        assert read_lines(path) == ['a', 'b']

    def test_invalid_utf8_is_replaced(self, tmp_path):
        path = tmp_path / 'bin.txt'
        path.write_bytes(b'ok \xff\n')
        assert read_lines(path) == ['ok \ufffd']

    def test_oversized_file(self, tmp_path):
        path = tmp_path / 'big.txt'
        path.write_text('x' * 100)
        assert read_content(path, max_bytes=99) is None
        assert read_content(path, max_bytes=100) == 'x' * 100

    def test_missing_file(self, tmp_path):
        assert read_lines(tmp_path / 'nope.txt') is None


class TestToRelative:

    def test_dot_slash_prefix(self, tmp_path):
        assert to_relative('./app.py', tmp_path) == 'app.py'
        assert to_relative('././src/app.py', tmp_path) == 'src/app.py'

    def test_absolute_under_root(self, tmp_path):
        assert to_relative(str(tmp_path / 'src' / 'web.js'), tmp_path) == 'src/web.js'

    def test_file_uri(self, tmp_path):
        assert to_relative(f'file://{tmp_path}/lib/x.py', tmp_path) == 'lib/x.py'

    def test_backslashes(self, tmp_path):
        assert to_relative('src\\views\\home.js', tmp_path) == 'src/views/home.js'

    def test_absolute_outside_root_is_kept(self, tmp_path):
        outside = tmp_path.parent / 'elsewhere.py'
        assert to_relative(str(outside), tmp_path / 'project') == str(outside)

    def test_relative_and_empty_untouched(self, tmp_path):
        assert to_relative('src/app.py', tmp_path) == 'src/app.py'
        assert to_relative(None, tmp_path) is None
