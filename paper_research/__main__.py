from paper_research.main import main

if __name__ == "__main__":
    main()
