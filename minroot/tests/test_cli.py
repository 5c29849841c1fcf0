"""Tests for CLI"""

import json

import pytest

from minroot.cli import colors
from minroot.cli.commands import STAGE_EXIT_CODES, cmd_build, cmd_closure, cmd_profiles
from minroot.cli.main import create_parser
from minroot.core import config
from minroot.core.adapter import InstallOptions
from minroot.core.errors import Stage


class TestParser:
    """Tests for argument parser."""

    def test_version_flag(self):
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(['--version'])

    def test_build_command(self):
        parser = create_parser()
        args = parser.parse_args(['build', 'python3', 'tzdata'])
        assert args.command == 'build'
        assert args.packages == ['python3', 'tzdata']
        assert args.root == '/target-rootfs'
        assert args.profile == 'default'
        assert args.repos == 'host'

    def test_build_alias(self):
        parser = create_parser()
        args = parser.parse_args(['b', '--root', '/tmp/r'])
        assert args.command == 'b'
        assert args.root == '/tmp/r'
        assert args.packages == []

    def test_build_with_flags(self):
        parser = create_parser()
        args = parser.parse_args([
            'build', '-p', 'python', '--repos', 'copy', '--strip', '--no-ldconfig',
            '--app-uid', '2000', '--closure-timeout', '30', '--json',
        ])
        assert args.profile == 'python'
        assert args.repos == 'copy'
        assert args.strip is True
        assert args.no_ldconfig is True
        assert args.app_uid == 2000
        assert args.closure_timeout == 30.0
        assert args.json is True

    def test_build_bad_repo_mode(self):
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(['build', '--repos', 'mirror'])

    def test_closure_alias(self):
        parser = create_parser()
        args = parser.parse_args(['c', 'bash'])
        assert args.command == 'c'
        assert args.packages == ['bash']

    def test_profiles_alias(self):
        parser = create_parser()
        args = parser.parse_args(['p'])
        assert args.command == 'p'


PROFILE = """\
description: Test shell root
packages: [bash, glibc-minimal-langpack, ncurses-libs]
disallow: [glibc-all-langpacks, systemd]
protect: [filesystem, setup, glibc, bash]
"""


@pytest.fixture(autouse=True)
def no_colors():
    colors.init(nocolor=True)


@pytest.fixture
def profiles(tmp_path, monkeypatch):
    d = tmp_path / 'profiles'
    d.mkdir()
    (d / 'shell.yaml').write_text(PROFILE)
    monkeypatch.setenv(config.PROFILE_DIR_ENV, str(d))
    return d


@pytest.fixture
def db(make_db, baseline_repo):
    return make_db(baseline_repo, preinstalled=['coreutils'])


@pytest.fixture
def build_args(tmp_path, profiles):
    def parse(*extra, profile='shell'):
        return create_parser().parse_args(['build'] + list(extra) + [
            '-p', profile, '--root', str(tmp_path / 'rootfs'),
            '--releasever', '40', '--no-ldconfig',
            '--buildinfo', str(tmp_path / 'no-buildinfo'),
        ])
    return parse


class TestBuildCommand:

    def test_success(self, db, build_args, capsys, tmp_path):
        assert cmd_build(build_args(), db) == 0

        out = capsys.readouterr().out
        assert 'Root ready' in out
        install = db.calls[0]
        assert install[3].releasever == '40'
        assert install[3].use_host_config is True

    def test_json_report(self, db, build_args, capsys):
        assert cmd_build(build_args('--json'), db) == 0

        report = json.loads(capsys.readouterr().out)
        assert report['removed'] == ['coreutils', 'glibc-all-langpacks']
        assert 'bash' in report['kept']
        assert report['kept_count'] == len(report['kept'])

    def test_unknown_profile(self, db, build_args, capsys):
        assert cmd_build(build_args(profile='nope'), db) == 1
        assert 'Unknown profile' in capsys.readouterr().out

    def test_disallowed_package(self, db, build_args):
        assert cmd_build(build_args('systemd'), db) == 1
        assert db.calls == []

    @pytest.mark.parametrize('operation, code', [
        ('install', 3),
        ('query-whatprovides', 4),
        ('erase', 5),
    ])
    def test_stage_exit_codes(self, db, build_args, capsys, operation, code):
        db.fail_on.add(operation)
        assert cmd_build(build_args(), db) == code
        assert 'Build failed at stage' in capsys.readouterr().out

    def test_exit_codes_distinct(self):
        assert sorted(STAGE_EXIT_CODES.values()) == [3, 4, 5, 6]
        assert STAGE_EXIT_CODES[Stage.FINALIZE] == 6


class TestClosureCommand:

    def closure_args(self, tmp_path, *extra):
        return create_parser().parse_args(
            ['closure', '-p', 'shell', '--root', str(tmp_path / 'rootfs')] + list(extra)
        )

    def test_dry_run(self, db, profiles, tmp_path, capsys):
        root = tmp_path / 'rootfs'
        db.install(root, ['bash', 'glibc-minimal-langpack', 'ncurses-libs'], InstallOptions())

        assert cmd_closure(self.closure_args(tmp_path, '--json'), db) == 0

        data = json.loads(capsys.readouterr().out)
        assert data['would_remove'] == ['coreutils', 'glibc-all-langpacks']
        assert 'glibc' in data['keep']
        assert not [c for c in db.calls if c[0] == 'erase']

    def test_text_output(self, db, profiles, tmp_path, capsys):
        root = tmp_path / 'rootfs'
        db.install(root, ['bash', 'glibc-minimal-langpack', 'ncurses-libs'], InstallOptions())

        assert cmd_closure(self.closure_args(tmp_path), db) == 0
        out = capsys.readouterr().out
        assert 'Closure (10)' in out
        assert 'Would remove (2)' in out

    def test_failure(self, db, profiles, tmp_path):
        db.fail_on.add('query-requires')
        assert cmd_closure(self.closure_args(tmp_path), db) == 4


class TestProfilesCommand:

    def test_list(self, profiles, capsys):
        args = create_parser().parse_args(['profiles', '--json'])
        assert cmd_profiles(args) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['shell']['packages'] == ['bash', 'glibc-minimal-langpack', 'ncurses-libs']
        assert data['shell']['protect'] == ['bash', 'filesystem', 'glibc', 'setup']
