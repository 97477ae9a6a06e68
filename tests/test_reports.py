import datetime

from ballotbox.reports import export_filename, result_rows, to_csv

RESULTS = [
    {
        'category_id': 1,
        'category_name': "Head Prefect",
        'total_votes': 3,
        'candidates': [
            {'candidate_id': 1, 'candidate_name': "Alice", 'class_level': "Form 3", 'vote_count': 2, 'percentage': 67},
            {'candidate_id': 2, 'candidate_name': "Bob", 'class_level': None, 'vote_count': 1, 'percentage': 33},
        ],
        'leader_ids': [1],
    },
    {
        'category_id': 2,
        'category_name': "Sports Prefect",
        'total_votes': 0,
        'candidates': [
            {'candidate_id': 3, 'candidate_name': "Carol", 'class_level': "Form 1", 'vote_count': 0, 'percentage': 0},
        ],
        'leader_ids': [],
    },
]


def test_rows_are_flat_and_in_catalog_order():
    rows = result_rows(RESULTS)

    assert rows[0] == {'category': "Head Prefect", 'candidate': "Alice", 'class_level': "Form 3",
                       'votes': 2, 'percentage': 67}
    assert [(r['category'], r['candidate']) for r in rows] == [
        ("Head Prefect", "Alice"),
        ("Head Prefect", "Bob"),
        ("Sports Prefect", "Carol"),
    ]


def test_csv_quotes_every_cell():
    assert to_csv(result_rows(RESULTS)) == (
        'Category,Candidate Name,Class,Votes,Percentage\n'
        '"Head Prefect","Alice","Form 3","2","67%"\n'
        '"Head Prefect","Bob","","1","33%"\n'
        '"Sports Prefect","Carol","Form 1","0","0%"\n'
    )


def test_export_filename_uses_the_date():
    assert export_filename(datetime.date(2026, 10, 17)) == "election_results_2026-10-17.csv"
