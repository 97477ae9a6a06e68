# reports.py
#
# Flat result rows for the CSV export and print collaborators.

import csv
import io

CSV_HEADERS = ['Category', 'Candidate Name', 'Class', 'Votes', 'Percentage']


def result_rows(results):
    """Flatten nested per-category results, keeping catalog order."""
    return [
        {
            'category': category['category_name'],
            'candidate': entry['candidate_name'],
            'class_level': entry['class_level'],
            'votes': entry['vote_count'],
            'percentage': entry['percentage'],
        }
        for category in results
        for entry in category['candidates']
    ]

def to_csv(rows) -> str:
    buffer = io.StringIO()
    # Header line is bare, every data cell is quoted
    buffer.write(','.join(CSV_HEADERS) + '\n')
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator='\n')
    for row in rows:
        writer.writerow([
            row['category'],
            row['candidate'],
            row['class_level'] or '',
            row['votes'],
            f"{row['percentage']}%",
        ])
    return buffer.getvalue()

def export_filename(today) -> str:
    return f"election_results_{today.isoformat()}.csv"
