from pathfinder.services.phases import get_phase


def _all_task_ids(phase_id: int) -> list[str]:
    return [task.id for task in get_phase(phase_id).tasks]


def test_progress_requires_authentication(client) -> None:
    assert client.get('/progress').status_code == 401


def test_new_user_starts_with_phase_one_unlocked(client, auth_headers) -> None:
    response = client.get('/progress', headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {'completed': [], 'unlocked': [1]}


def test_phase_catalogue_requires_authentication(client, auth_headers) -> None:
    assert client.get('/progress/phases').status_code == 401

    response = client.get('/progress/phases', headers=auth_headers)

    assert response.status_code == 200
    assert [phase['phase'] for phase in response.json()] == [1, 2, 3, 4, 5]
    assert response.json()[0]['xpTotal'] == 580


def test_complete_requires_every_required_task(client, auth_headers) -> None:
    response = client.post(
        '/progress/phases/1/complete',
        json={'completedTaskIds': _all_task_ids(1)[:3]},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()['status'] == 'phase_requirements_not_met'


def test_complete_and_unlock_with_staff_code(client, auth_headers) -> None:
    response = client.post(
        '/progress/phases/1/complete',
        json={'completedTaskIds': _all_task_ids(1)},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()['xpEarned'] == 580
    assert response.json()['progress'] == {'completed': [1], 'unlocked': [1]}

    response = client.post(
        '/progress/phases/1/unlock',
        json={'code': ' eic-1 ', 'issuedBy': 'eic-staff'},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()['status'] == 'unlocked'
    assert response.json()['message'] == 'Unlocked! You can now access Phase 2.'
    assert response.json()['progress'] == {'completed': [1], 'unlocked': [1, 2]}

    again = client.post('/progress/phases/1/unlock', json={'code': 'EIC-1'}, headers=auth_headers)

    assert again.status_code == 200
    assert again.json()['status'] == 'already_unlocked'


def test_wrong_unlock_code_is_rejected(client, auth_headers) -> None:
    client.post('/progress/phases/1/complete', json={'completedTaskIds': _all_task_ids(1)}, headers=auth_headers)

    response = client.post('/progress/phases/1/unlock', json={'code': 'EIC-9'}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()['status'] == 'invalid_unlock_code'
    assert client.get('/progress', headers=auth_headers).json() == {'completed': [1], 'unlocked': [1]}


def test_unlock_before_completion_is_a_conflict(client, auth_headers) -> None:
    response = client.post('/progress/phases/1/unlock', json={'code': 'EIC-1'}, headers=auth_headers)

    assert response.status_code == 409
    assert response.json()['status'] == 'phase_not_completed'


def test_locked_phase_cannot_be_completed(client, auth_headers) -> None:
    response = client.post(
        '/progress/phases/2/complete',
        json={'completedTaskIds': _all_task_ids(2)},
        headers=auth_headers,
    )

    assert response.status_code == 403
    assert response.json()['status'] == 'phase_locked'


def test_unknown_phase_is_a_validation_error(client, auth_headers) -> None:
    response = client.post('/progress/phases/9/complete', json={'completedTaskIds': []}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()['status'] == 'validation_error'


def test_current_phase_and_assessment_updates(client, auth_headers) -> None:
    locked = client.put('/progress/current-phase', json={'currentPhase': 2}, headers=auth_headers)
    assert locked.status_code == 403

    response = client.put('/progress/current-phase', json={'currentPhase': 1}, headers=auth_headers)
    assert response.status_code == 200

    response = client.put('/progress/assessment', json={'assessmentLevel': 'Advanced'}, headers=auth_headers)
    assert response.status_code == 200

    user = client.get('/auth/me', headers=auth_headers).json()['user']
    assert user['currentPhase'] == 1
    assert user['assessmentLevel'] == 'advanced'


def test_invalid_assessment_level_is_rejected(client, auth_headers) -> None:
    response = client.put('/progress/assessment', json={'assessmentLevel': 'expert'}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()['message'] == 'Assessment level must be beginner, intermediate, or advanced.'
