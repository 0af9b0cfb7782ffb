import io

import pytest

from scripts.health_check import HealthCheck, CRITICAL_FILES, load_env_local, main
from utils.config import REQUIRED_FIREBASE_VARS

@pytest.fixture
def project_root(tmp_path):
    """A project tree holding every critical file"""
    for name in CRITICAL_FILES:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text('')
    (tmp_path / 'main.py').write_text(
        "@api_bp.route('/admin/drafts')\n@api_bp.route('/news')\n@api_bp.route('/badges')\n"
    )
    (tmp_path / 'setup.py').write_text("extras_require={'test': []}\n")
    return tmp_path

@pytest.fixture
def firebase_env():
    return {name: 'value' for name in REQUIRED_FIREBASE_VARS}

class TestHealthCheck:

    def test_missing_firebase_vars_fail(self, project_root, capsys):
        assert main(root=project_root, environ={}) == 1

        output = capsys.readouterr().out
        for name in REQUIRED_FIREBASE_VARS:
            assert name in output

    def test_configured_project_is_healthy(self, project_root, firebase_env):
        report = HealthCheck(root=project_root, environ=firebase_env, out=io.StringIO()).run_all_checks()

        assert report['status'] == 'HEALTHY'
        assert report['criticalIssues'] == []
        assert report['results']['core']['environment']['required'] == len(REQUIRED_FIREBASE_VARS)

    def test_missing_files_are_critical(self, project_root, firebase_env):
        (project_root / 'services' / 'news_service.py').unlink()

        report = HealthCheck(root=project_root, environ=firebase_env, out=io.StringIO()).run_all_checks()

        assert report['status'] == 'CRITICAL'
        assert 'services/news_service.py' in report['criticalIssues'][0]['message']

    def test_disabled_routes_are_warnings(self, project_root, firebase_env):
        (project_root / 'main.py').write_text('# nothing routed\n')

        report = HealthCheck(root=project_root, environ=firebase_env, out=io.StringIO()).run_all_checks()

        assert len(report['warnings']) == 3
        assert report['status'] == 'HEALTHY'

    def test_more_than_three_warnings(self, project_root, firebase_env):
        (project_root / 'main.py').write_text('# nothing routed\n')
        firebase_env['NODE_ENV'] = 'production'

        report = HealthCheck(root=project_root, environ=firebase_env, out=io.StringIO()).run_all_checks()

        assert len(report['warnings']) == 4
        assert report['status'] == 'WARNING'
        assert main(root=project_root, environ=firebase_env) == 0

    def test_env_local_is_read(self, project_root):
        lines = [f"{name}=value" for name in REQUIRED_FIREBASE_VARS]
        lines.append('OTHER_KEY=ignored')
        (project_root / '.env.local').write_text('\n'.join(lines) + '\n')

        assert main(root=project_root, environ={}) == 0

class TestLoadEnvLocal:

    def test_only_react_app_keys_are_kept(self, tmp_path):
        (tmp_path / '.env.local').write_text('REACT_APP_A="50%off"\nSECRET=x\n')

        environ = load_env_local(tmp_path, {})

        assert environ == {'REACT_APP_A': '50off'}

    def test_missing_file(self, tmp_path):
        assert load_env_local(tmp_path, {'KEEP': '1'}) == {'KEEP': '1'}
